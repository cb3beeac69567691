from dataclasses import dataclass

from flask import current_app


@dataclass(frozen=True)
class MembershipPolicy:
    """Settings the membership workflow depends on, taken from app config."""

    party_name: str
    party_short_name: str
    admin_email: str
    number_prefix: str
    number_digits: int
    validity_days: int
    payment_methods: tuple

    @classmethod
    def from_config(cls, config):
        return cls(
            party_name=config["PARTY_NAME"],
            party_short_name=config["PARTY_SHORT_NAME"],
            admin_email=config["ADMIN_EMAIL"],
            number_prefix=config["MEMBERSHIP_NUMBER_PREFIX"],
            number_digits=int(config.get("MEMBERSHIP_NUMBER_DIGITS", 6)),
            validity_days=int(config.get("MEMBERSHIP_VALIDITY_DAYS", 365)),
            payment_methods=tuple(config.get("RENEWAL_PAYMENT_METHODS", ())),
        )

    def format_number(self, sequence_value):
        return f"{self.number_prefix}{sequence_value:0{self.number_digits}d}"


def current_policy():
    return MembershipPolicy.from_config(current_app.config)

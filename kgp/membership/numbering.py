"""Atomic sequences backing membership-number issuance.

Numbers are drawn with ``UPDATE ... SET value = value + 1`` so two
concurrent approvals can never read the same value; the row write lock is
held until the surrounding transaction commits or rolls back.
"""

from sqlalchemy.exc import IntegrityError

from ..models import MembershipSequence, db

MEMBERSHIP_NUMBER_SEQUENCE = "membership_number"


def next_value(name):
    """Increment sequence *name* and return the new value.

    Must run inside the caller's transaction; a rollback returns the value.
    """
    result = db.session.execute(
        db.update(MembershipSequence)
        .where(MembershipSequence.name == name)
        .values(value=MembershipSequence.value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        try:
            with db.session.begin_nested():
                db.session.add(MembershipSequence(name=name, value=1))
            return 1
        except IntegrityError:
            # Another writer created the row first; increment theirs.
            return next_value(name)

    return db.session.execute(db.select(MembershipSequence.value).where(MembershipSequence.name == name)).scalar_one()


def next_membership_number(policy):
    return policy.format_number(next_value(MEMBERSHIP_NUMBER_SEQUENCE))


def current_value(name):
    value = db.session.execute(
        db.select(MembershipSequence.value).where(MembershipSequence.name == name)
    ).scalar_one_or_none()
    return value or 0

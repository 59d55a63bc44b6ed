"""
Seat accounting.

The seat guard is a plain read-then-compare. Two near-simultaneous invites
can both pass before either commits; seat overage is a soft business limit,
so no lock is taken.
"""

from apps.access.resolver import MODE_COMPANY, Authorization, ExecutionContext, resolve
from apps.companies.exceptions import SeatLimitExceededError
from apps.companies.models import Company


def get_company_authorization(company: Company) -> Authorization:
    """Resolve the company's own plan, as seen from inside the company."""
    context = ExecutionContext(mode=MODE_COMPANY, company_id=str(company.id))
    return resolve(context, company.subscription_state)


def get_effective_seat_limit(company: Company) -> int:
    """Seat limit override, or the effective plan's default."""
    return get_company_authorization(company).seat_limit


def enforce_seat_limit(company: Company) -> None:
    """
    Raise if the company cannot take another active member.

    Raises:
        SeatLimitExceededError: active members >= effective seat limit
    """
    seat_limit = get_effective_seat_limit(company)
    seat_count = company.seat_count
    if seat_count >= seat_limit:
        raise SeatLimitExceededError(seat_limit=seat_limit, seat_count=seat_count)

"""
Exceptions for companies app.
"""


class CompanyError(Exception):
    """Base exception for company operations."""

    pass


class SeatLimitExceededError(CompanyError):
    """The company has no free seat for another active member."""

    def __init__(self, seat_limit: int, seat_count: int):
        super().__init__(f"Seat limit reached ({seat_limit})")
        self.seat_limit = seat_limit
        self.seat_count = seat_count


class CompanyProvisioningError(CompanyError):
    """Company could not be provisioned."""

    pass


class InvalidPlanError(CompanyError):
    """Plan key is not in the catalog."""

    pass

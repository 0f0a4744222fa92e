"""
Domain exceptions raised by the booking operations layer.

The pricing calculator and the return-workflow checks never raise; these
are for the persistence-facing services, and the routers translate them
into HTTP responses.
"""


class RentalOpsError(Exception):
    """Base class carrying a human-readable message."""

    status_code = 400
    default_message = "Error: rental operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class BookingNotFoundError(RentalOpsError):
    """Raised when a booking ID cannot be found."""

    status_code = 404
    default_message = "Error: booking not found"


class WorkflowViolationError(RentalOpsError):
    """Raised when a status or return-state change is blocked by the workflow."""

    status_code = 409
    default_message = "Error: transition blocked by return workflow"


class InvalidBypassReasonError(RentalOpsError):
    """Raised when an override is requested with an inadequate justification."""

    status_code = 422
    default_message = "Error: bypass reason must be at least 50 characters"


class PriceMismatchError(RentalOpsError):
    """Raised when a client-submitted total disagrees with the server quote."""

    status_code = 409
    default_message = "Error: price mismatch"


class DepositProcessingError(RentalOpsError):
    """Raised when a deposit decision cannot be applied."""

    status_code = 409
    default_message = "Error: deposit processing failed"


class InvalidRateSettingError(RentalOpsError):
    """Raised when a settings-store value cannot be parsed as a rate."""

    status_code = 422
    default_message = "Error: invalid rate setting"

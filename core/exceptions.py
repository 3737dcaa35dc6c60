"""Error taxonomy of the ticket reservation flow."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes returned to the frontend."""

    AUTH_REQUIRED = "AUTH_REQUIRED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    QUANTITY_OUT_OF_RANGE = "QUANTITY_OUT_OF_RANGE"
    SERVER_REJECTED = "SERVER_REJECTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    SUBMISSION_STATE = "SUBMISSION_STATE"


class TicketingError(Exception):
    """Base error with code and user-safe message."""

    code: ErrorCode

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class AuthRequiredError(TicketingError):
    """Raised when a gated action is attempted without a session."""

    code = ErrorCode.AUTH_REQUIRED

    def __init__(
        self, return_path: Optional[str] = None, message: str = "Login required"
    ) -> None:
        super().__init__(message)
        self.return_path = return_path


class FormValidationError(TicketingError):
    """Raised when a client-side pre-submit check fails."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        attendee_position: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.attendee_position = attendee_position


class QuantityOutOfRangeError(TicketingError):
    """Raised when the requested quantity is below 1 or above the remaining stock."""

    code = ErrorCode.QUANTITY_OUT_OF_RANGE

    def __init__(
        self, quantity: int, minimum: int = 1, maximum: Optional[int] = None
    ) -> None:
        if maximum is None:
            message = f"Quantity must be at least {minimum}, got {quantity}"
        elif maximum < minimum:
            message = "No tickets available"
        else:
            message = (
                f"Quantity must be between {minimum} and {maximum}, got {quantity}"
            )
        super().__init__(message)
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum


class ServerRejectedError(TicketingError):
    """Raised when the DAME API answers with a non-success response."""

    code = ErrorCode.SERVER_REJECTED

    def __init__(
        self,
        status_code: int,
        message: str,
        field_errors: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.field_errors = field_errors or {}


class NetworkError(TicketingError):
    """Raised when the DAME API could not be reached."""

    code = ErrorCode.NETWORK_ERROR


class SubmissionStateError(TicketingError):
    """Raised when a submission is attempted while one is outstanding or done."""

    code = ErrorCode.SUBMISSION_STATE

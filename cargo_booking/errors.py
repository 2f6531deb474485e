"""Exception hierarchy for the booking core and its collaborators."""

from typing import Any, Optional


class BookingError(Exception):
    """Base class for every error raised by the booking core."""


# --------------------------------------------------------------------------- #
# Interval construction (resolved locally, never fatal)
# --------------------------------------------------------------------------- #


class IntervalError(BookingError):
    """The current date/time selection does not form a bookable interval."""


class IncompleteSelection(IntervalError):
    """Start or end date has not been selected yet."""


class InvertedRange(IntervalError):
    """The computed end instant is not strictly after the start instant."""


class OffGridTime(IntervalError):
    """A clock time outside the half-hour grid was supplied."""


# --------------------------------------------------------------------------- #
# Orchestrator
# --------------------------------------------------------------------------- #


class FormValidationError(BookingError):
    """Submission blocked; ``fields`` maps every violated field to its message."""

    def __init__(self, fields: dict[str, str]):
        self.fields = dict(fields)
        super().__init__(
            "Please correct the errors in the form: " + ", ".join(sorted(self.fields))
        )


class AvailabilityDenied(BookingError):
    """The vehicle is not free for the requested interval."""

    def __init__(self, message: str = "Car is not available for the selected period."):
        super().__init__(message)
        self.message = message


class BookingLockedError(BookingError):
    """Inputs cannot change while a submission is running or after it finished."""


# --------------------------------------------------------------------------- #
# Collaborators
# --------------------------------------------------------------------------- #


class ServiceError(BookingError):
    """Network or server failure on a collaborator call."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class NotFound(ServiceError):
    """The requested vehicle or booking does not exist."""


class ValidationError(ServiceError):
    """The collaborator rejected the payload; ``fields`` lists the offending fields."""

    def __init__(
        self,
        message: str,
        fields: Optional[dict[str, str]] = None,
        status_code: Optional[int] = None,
        response: Any = None,
    ):
        super().__init__(message, status_code=status_code, response=response)
        self.fields = dict(fields or {})


class VerificationError(BookingError):
    """Payment proof rejected or the verification call failed.

    Money may already have been captured, so this is always reported with a
    support contact and never retried.
    """

    def __init__(self, message: str, support_contact: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.support_contact = support_contact

    def support_message(self) -> str:
        contact = f" at {self.support_contact}" if self.support_contact else ""
        return (
            f"{self.message} Your payment may have been captured; "
            f"please contact support{contact} before trying again."
        )

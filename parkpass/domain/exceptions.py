class BookingError(ValueError):
    """Base class for every error the booking engine raises on purpose."""

    code = "booking_error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidSelection(BookingError):
    """Slot selection or input rejected before anything is written."""

    code = "invalid_selection"


class CapacityConflict(BookingError):
    """The requested capacity was taken by someone else; fetch availability again."""

    code = "capacity_conflict"
    retryable = True


class InvalidTransition(BookingError):
    code = "invalid_transition"

    def __init__(self, current: str, action: str):
        super().__init__(f"Cannot {action} a booking that is {current}")
        self.current = current
        self.action = action


class ScopeMismatch(BookingError):
    code = "scope_mismatch"


class AccessDenied(BookingError):
    code = "access_denied"


class NotFound(BookingError):
    code = "not_found"


class VerificationInconclusive(BookingError):
    """OCR could not confirm the payment; the slip waits for an operator."""

    code = "verification_inconclusive"
    retryable = True

    def __init__(self, message: str, confidence: float):
        super().__init__(message)
        self.confidence = confidence

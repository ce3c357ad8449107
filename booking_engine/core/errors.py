"""Error taxonomy shared by the booking services and the HTTP layer.

Every error carries a coarse ``kind`` (what the client should do about it)
and a finer ``code`` (why it happened).  The HTTP layer renders both.
"""


class BookingError(Exception):
    kind = "internal"
    code = "internal"
    status_code = 500

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.code, "kind": self.kind, "message": self.message}


class InvalidInput(BookingError):
    kind = "invalid_input"
    code = "invalid_input"
    status_code = 422


class NotFound(BookingError):
    kind = "invalid_input"
    code = "not_found"
    status_code = 404


class InvalidToken(BookingError):
    kind = "invalid_token"
    code = "invalid_token"
    status_code = 404


class TemporalError(BookingError):
    """Chosen time is not bookable: past, holiday, lunch, notice or window."""
    kind = "temporal"
    code = "in_the_past"
    status_code = 422


class SlotConflict(BookingError):
    kind = "conflict"
    code = "conflict"
    status_code = 409


class InvalidTransition(BookingError):
    kind = "conflict"
    code = "invalid_transition"
    status_code = 409


class Internal(BookingError):
    pass

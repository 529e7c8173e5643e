class SyllabusCalendarError(Exception):
    """Base class for errors the HTTP layer renders as ``{"error": ...}``."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTimeFormat(SyllabusCalendarError, ValueError):
    """A time token whose hour is not a number (or is out of range)."""

    status_code = 400


class InvalidRequest(SyllabusCalendarError):
    status_code = 400


class AuthExpired(SyllabusCalendarError):
    """Access and refresh credentials are both unusable; the caller must re-authorize."""

    status_code = 401

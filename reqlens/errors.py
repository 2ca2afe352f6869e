"""Error hierarchy for reqlens."""


class ReqlensError(Exception):
    """Base exception for all reqlens errors."""

    pass


class ResponseNotSetError(ReqlensError):
    """Raised when the response status is read before a response was attached.

    A record without a response is incomplete, so this is never defaulted.
    """

    def __init__(self, message: str = "No response set; call set_response() before resolve()"):
        super().__init__(message)

from typing import Optional

from fastapi import status
from fastapi.responses import JSONResponse

class ApplicationException(Exception):
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_response(self):
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.message}
        )


class AuthError(ApplicationException):
    """Caller identity missing or invalid. Never retried."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class ConfigurationError(ApplicationException):
    """Provider credentials are not configured on the server."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class UpstreamError(ApplicationException):
    """A third-party API rejected the call."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    ):
        super().__init__(message, status_code)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class RateLimitedError(UpstreamError):
    def __init__(self, message: str = "Rate limits exceeded, please try again later."):
        super().__init__(message, upstream_status=429, status_code=status.HTTP_429_TOO_MANY_REQUESTS)


class QuotaExceededError(UpstreamError):
    def __init__(self, message: str = "AI service credits exhausted."):
        super().__init__(message, upstream_status=402, status_code=status.HTTP_402_PAYMENT_REQUIRED)


class NotFoundError(ApplicationException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ApplicationException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_409_CONFLICT)


class PersistenceError(ApplicationException):
    """A session or message write failed."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class SummarizationParseError(ApplicationException):
    """Model output was not the expected JSON. Recovered with a fallback summary."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.raw_output = raw_output


class MediaAcquisitionError(ApplicationException):
    """Microphone or speaker could not be opened on the client."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class HandshakeError(UpstreamError):
    """The realtime provider refused the SDP offer."""

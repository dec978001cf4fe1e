from __future__ import annotations

from fastapi import status


class PhoneAuthError(Exception):
    """Base for failures that end a phone-auth request with a public message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(PhoneAuthError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(PhoneAuthError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidOrExpired(PhoneAuthError):
    # wrong code, expired code and no pending code all look the same to callers
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(PhoneAuthError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RateLimited(PhoneAuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, message: str = "Too many requests", retry_after: int = 10) -> None:
        super().__init__(message)
        self.retry_after = retry_after

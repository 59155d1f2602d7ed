"""Exception types shared by the review and upload components"""
from typing import Optional


class ReviewError(Exception):
    """Base class for every error raised by this package"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReviewValidationError(ReviewError, ValueError):
    """Local input problem detected before any request is sent"""


class APIError(ReviewError):
    """Non-2xx response or transport failure from the grading backend"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotAuthenticatedError(APIError):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, status_code=None)


class ViewClosedError(ReviewError):
    """The view owning an operation was torn down while it was pending"""

    def __init__(self, message: str = "View has been closed"):
        super().__init__(message)


class ConfigError(ReviewError):
    pass

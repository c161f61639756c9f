from typing import Any, Dict, Optional


class PhotoboothError(Exception):
    """
    Base for errors that are safe to show to API callers.

    Rendered as ``{statusCode, message, code}``; never carries a traceback
    to the client.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"statusCode": self.status_code, "message": self.message, "code": self.code}


class InvalidRequestError(PhotoboothError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(PhotoboothError):
    status_code = 401
    code = "UNAUTHORIZED"


class NotFoundError(PhotoboothError):
    status_code = 404
    code = "NOT_FOUND"


class StorageError(PhotoboothError):
    """Raised when durable storage rejects an upload or download."""

    status_code = 500
    code = "STORAGE_ERROR"

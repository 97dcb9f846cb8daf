"""
Domain exceptions raised by the service layer.

Routers never build error responses themselves; the application-level
handler renders any ``AppError`` as ``{"success": false, "message": ...}``
with the status code carried by the exception.
"""
from typing import Optional


class AppError(Exception):
    """Base application error. Subclass to define domain-specific errors."""

    status_code: int = 400
    default_detail: str = "An error occurred."

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def __str__(self) -> str:
        return self.detail


class NotFoundError(AppError):
    status_code = 404
    default_detail = "The requested resource was not found."


class UnauthorizedError(AppError):
    status_code = 403
    default_detail = "You do not have permission to perform this action."


class ServerError(AppError):
    """Business rule violation or a failure talking to a data source."""

    status_code = 400
    default_detail = "Request failed."


class SourceError(Exception):
    """Raised by sql_utils when a data source cannot be reached or queried."""

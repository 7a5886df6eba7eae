from typing import Any, List, Optional


class AppError(Exception):
    """Application error carrying the HTTP status it should be reported with."""

    def __init__(self, message: str, status_code: int = 500, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body

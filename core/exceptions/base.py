from typing import Optional


class AppException(Exception):
    """
    Base class for every error that is rendered to API clients.

    Carries a machine readable ``error_code`` next to the human text and the
    HTTP status the exception handler should answer with.
    """

    status_code: int = 400
    default_error_code: str = "ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
        }

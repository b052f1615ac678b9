from core.exceptions.base import AppException


class NotFoundException(AppException):
    status_code = 404
    default_error_code = "NOT_FOUND"


class IntegrityFault(AppException):
    """
    A persisted invariant was found broken. The transaction is aborted and
    the client only ever sees a generic message; the detail goes to the log.
    """

    status_code = 500
    default_error_code = "INTERNAL_ERROR"
    public_message = "Something went wrong. Please try again later."

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.public_message,
        }

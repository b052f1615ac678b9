from core.exceptions.base import AppException


class ForbiddenException(AppException):
    status_code = 403
    default_error_code = "FORBIDDEN"


class UnauthorizedException(AppException):
    status_code = 401
    default_error_code = "UNAUTHORIZED"

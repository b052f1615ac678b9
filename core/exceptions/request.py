from core.exceptions.base import AppException


class InvalidRequestException(AppException):
    status_code = 400
    default_error_code = "INVALID_REQUEST"

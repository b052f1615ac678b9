from core.exceptions.base import AppException
from core.exceptions.request import InvalidRequestException
from core.exceptions.authentication import ForbiddenException
from core.exceptions.database import NotFoundException

__all__ = [
    "AppException",
    "InvalidRequestException",
    "ForbiddenException",
    "NotFoundException",
]

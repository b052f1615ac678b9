import logging

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

from core.exceptions.base import AppException
from core.exceptions.database import IntegrityFault

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException):
    if isinstance(exc, IntegrityFault):
        logger.error(
            f"Integrity fault on {request.method} {request.url.path}: {exc.message}"
        )
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)

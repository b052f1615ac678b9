import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import HTMLResponse

from apps.context import AppContext, build_context
from apps.settings import settings
from core.events.schema import Event
from core.exceptions.handlers import register_exception_handlers

logger = logging.getLogger(__name__)


async def log_event(event: Event) -> None:
    logger.debug(f"Event {event.type}: {event.payload}")


def create_app(context_factory: Optional[Callable[[], AppContext]] = None) -> FastAPI:
    context_factory = context_factory or (lambda: build_context(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application Starting Up ...")
        context = context_factory()
        app.state.context = context
        if context.settings.AUTO_CREATE_TABLES:
            await context.db.create_all()

        context.events.subscribe(log_event)
        await context.events.start()

        sweeper_task = None
        if context.settings.SWEEPER_ENABLED:
            from apps.api.reservation.sweeper import GracePeriodSweeper

            sweeper = GracePeriodSweeper(context)
            sweeper_task = asyncio.create_task(sweeper.run_forever(), name="grace_sweeper")

        try:
            yield
        finally:
            if sweeper_task is not None:
                sweeper_task.cancel()
                try:
                    await sweeper_task
                except asyncio.CancelledError:
                    pass
            await context.events.stop()
            await context.db.dispose()
            logger.info("Application closing")

    app = FastAPI(
        title="Campus Parking",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        # browsers refuse a wildcard origin on credentialed requests
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    from apps.api.billing.router import router as billing_router
    from apps.api.capacity.router import router as capacity_router
    from apps.api.reservation.router import router as reservation_router
    from apps.api.reservation.router import session_router
    from apps.api.vehicle.router import router as vehicle_router

    for router in (
        reservation_router,
        session_router,
        capacity_router,
        billing_router,
        vehicle_router,
    ):
        app.include_router(router, prefix="/api")

    @app.get("/api/ping", summary="Ping the API", tags=["Health Check"])
    def root():
        return HTMLResponse(content="<html><h1>Campus parking is up.</h1></html>")

    return app


app = create_app()

import logging
from typing import Annotated, AsyncIterator

from fastapi import Depends, Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.db.base import AbstractSQLModel

logger = logging.getLogger(__name__)


class DatabaseHandle:
    """
    Owns the engine and the session factory for the lifetime of the process.

    One handle is created at startup and passed explicitly to everything that
    needs a database session; nothing in the project creates engines lazily.
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        connect_args = engine_kwargs.pop("connect_args", {})
        if url.startswith("sqlite"):
            # concurrent writers wait on the database lock instead of failing
            connect_args.setdefault("timeout", 30)
        self.engine: AsyncEngine = create_async_engine(
            url, echo=echo, connect_args=connect_args, **engine_kwargs
        )
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.sessionmaker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(AbstractSQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    handle: DatabaseHandle = request.app.state.context.db
    async with handle.session() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_db)]

from typing import Annotated, Any, Callable, Type, TypeVar

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.db.core import SessionDep

T = TypeVar("T", bound="AbstractService")


def get_app_context(request: Request) -> Any:
    return request.app.state.context


ContextDep = Annotated[Any, Depends(get_app_context)]


class AbstractService:
    def __init__(self, session: AsyncSession, context: Any):
        """
        Initialize the service with an AsyncSession and the application context.

        :param session: SQLAlchemy AsyncSession instance.
        :param context: Process wide handle (database, event bus, cache, clock).
        """
        self.session = session
        self.context = context

    @classmethod
    def _get_dependency_function(
        cls: Type[T], session: SessionDep, context: ContextDep
    ) -> T:
        """
        Internal method to return a class instance as a dependency.

        This is designed to be used internally by FastAPI's `Depends()`.
        It accepts the database session and returns an instance of the service.

        :param session: The async database session (injected by FastAPI).
        :param context: The application context stored on ``app.state``.
        :return: An instance of the service class.
        """
        return cls(session=session, context=context)

    @classmethod
    def get_dependency(cls: Type[T]) -> Callable[..., T]:
        """
        Returns a FastAPI dependency for this service.

        This can be used in route definitions to inject the service automatically.
        """
        return Depends(cls._get_dependency_function)

    def now(self):
        return self.context.clock()

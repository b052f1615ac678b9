from sqlalchemy.orm import DeclarativeBase


class AbstractSQLModel(DeclarativeBase):
    """
    Declarative base shared by every model in the project.

    Models register themselves on ``AbstractSQLModel.metadata`` when their
    module is imported; the alembic env and the test fixtures rely on that.
    """

    __abstract__ = True

    def __repr__(self) -> str:
        pk = getattr(self, "id", None)
        return f"<{self.__class__.__name__} id={pk}>"

# apps/api/user/models.py

import uuid
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, String, Uuid
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.mixins import TimestampsMixin


class UserRoles(PyEnum):
    USER = "user"
    ATTENDANT = "attendant"
    ADMIN = "admin"


OPERATOR_ROLES = {UserRoles.ATTENDANT.value, UserRoles.ADMIN.value}


# -------------------------
# 1. User Model
# -------------------------
class User(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    fullname = Column(String(120), nullable=False)
    email = Column(String(120), nullable=True, unique=True)
    role = Column(
        String(20),
        default=UserRoles.USER.value,
        nullable=False,
        server_default=UserRoles.USER.value,
    )
    # ephemeral identities created by attendants for walk-in guests
    is_guest = Column(Boolean, default=False, nullable=False, server_default="0")

    vehicles = relationship("Vehicle", back_populates="owner")

    @property
    def is_operator(self) -> bool:
        return self.role in OPERATOR_ROLES

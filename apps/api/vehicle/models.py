# apps/api/vehicle/models.py

import uuid

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.mixins import TimestampsMixin


# -------------------------
# 1. Vehicle Model
# -------------------------
class Vehicle(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "vehicles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    plate_number = Column(String(20), unique=True, nullable=False)
    vehicle_type = Column(String(30), nullable=False)
    brand = Column(String(50), nullable=True)
    color = Column(String(30), nullable=True)

    owner = relationship("User", back_populates="vehicles")

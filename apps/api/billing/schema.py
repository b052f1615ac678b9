# apps/api/billing/schema.py

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from core.response.models import CustomBaseModel


class GrantRequest(CustomBaseModel):
    user_id: UUID
    hours: Decimal = Field(..., gt=0, max_digits=12, decimal_places=4)
    source: Optional[str] = Field(None, max_length=50, description="Plan name or payment reference")


class SettlementResponse(CustomBaseModel):
    grant_id: Optional[UUID] = None
    hours_granted: Decimal
    penalty_applied_hours: Decimal
    hours_after_penalty: Decimal
    outstanding_penalty_hours: Decimal
    balance_hours: Decimal


class BalanceResponse(CustomBaseModel):
    user_id: UUID
    balance_hours: Decimal
    outstanding_penalty_hours: Decimal
    can_reserve: bool

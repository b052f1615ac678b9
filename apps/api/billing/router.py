# apps/api/billing/router.py

from fastapi import APIRouter

from apps.api.auth.dependency import OperatorDependency, UserDependency
from apps.api.billing.schema import BalanceResponse, GrantRequest, SettlementResponse
from apps.api.billing.service import BillingServiceDependency

router = APIRouter(
    prefix="/billing",
    tags=["Billing"],
)


@router.post("/grants", description="Grant parking hours, settling penalties first (Operator)")
async def grant_hours(
    data: GrantRequest,
    operator: OperatorDependency,
    billing_service: BillingServiceDependency,
) -> SettlementResponse:
    """
    Records hours bought by a user (payment capture happens upstream).
    Outstanding penalties are paid down oldest first before the remainder
    becomes usable balance.
    """
    result = await billing_service.grant_hours(
        data.user_id, data.hours, source=data.source or f"operator:{operator.id}"
    )
    return SettlementResponse.model_validate(result)


@router.get("/balance", description="Remaining hours and outstanding penalty")
async def get_balance(
    user: UserDependency,
    billing_service: BillingServiceDependency,
) -> BalanceResponse:
    balance = await billing_service.get_balance_hours(user.id)
    penalty = await billing_service.get_outstanding_penalty(user.id)
    return BalanceResponse(
        user_id=user.id,
        balance_hours=balance,
        outstanding_penalty_hours=penalty,
        can_reserve=penalty <= 0 and balance > 0,
    )

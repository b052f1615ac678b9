# apps/api/billing/__init__.py

# ONLY import models here (needed for registry)
from .models import BalanceGrant, PenaltyEntry, GrantStatus

__all__ = ["BalanceGrant", "PenaltyEntry", "GrantStatus"]

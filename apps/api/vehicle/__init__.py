# apps/api/vehicle/__init__.py

# ONLY import models here (needed for registry)
from .models import Vehicle

__all__ = ["Vehicle"]

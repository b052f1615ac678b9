# apps/api/user/__init__.py

# ONLY import models here (needed for registry)
from .models import User, UserRoles

__all__ = ["User", "UserRoles"]

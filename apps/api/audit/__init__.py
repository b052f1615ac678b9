# apps/api/audit/__init__.py

# ONLY import models here (needed for registry)
from .models import ScanEvent, ActivityLog, ScanType

__all__ = ["ScanEvent", "ActivityLog", "ScanType"]

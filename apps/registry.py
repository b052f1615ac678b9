# apps/registry.py
"""
Imports every feature package so all models are registered on the shared
metadata before mappers are configured, tables are created or alembic
autogenerates.
"""

import importlib

FEATURE_PACKAGES = (
    "apps.api.user",
    "apps.api.vehicle",
    "apps.api.capacity",
    "apps.api.reservation",
    "apps.api.billing",
    "apps.api.audit",
)


def load_models() -> None:
    for package in FEATURE_PACKAGES:
        importlib.import_module(package)

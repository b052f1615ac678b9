# apps/api/capacity/categories.py

from typing import Optional

from apps.api.capacity.models import VehicleCategory

CATEGORY_SYNONYMS = {
    "bike": VehicleCategory.BICYCLE.value,
    "bicycle": VehicleCategory.BICYCLE.value,
    "ebike": VehicleCategory.BICYCLE.value,
    "e-bike": VehicleCategory.BICYCLE.value,
    "motorbike": VehicleCategory.MOTORCYCLE.value,
    "motorcycle": VehicleCategory.MOTORCYCLE.value,
    "car": VehicleCategory.CAR.value,
}


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Map a free-form vehicle/spot type onto its canonical category."""
    if not value:
        return None
    lowered = value.strip().lower()
    return CATEGORY_SYNONYMS.get(lowered, lowered)


def categories_match(vehicle_type: Optional[str], spot_category: Optional[str]) -> bool:
    vehicle = normalize_category(vehicle_type)
    return vehicle is not None and vehicle == normalize_category(spot_category)

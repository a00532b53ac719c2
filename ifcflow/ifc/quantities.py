"""Quantity takeoff over element quantity sets."""

import logging
from typing import Any

from ifcflow.ifc.elements import properties_of

logger = logging.getLogger(__name__)

# Quantity names tried in order inside each quantity set
QUANTITY_KEYS: dict[str, tuple[str, ...]] = {
    "length": ("Length", "Height", "Width", "Depth"),
    "area": ("Area", "NetArea", "GrossArea", "NetFloorArea", "GrossFloorArea"),
    "volume": ("Volume", "NetVolume", "GrossVolume"),
    "weight": ("Weight", "NetWeight", "GrossWeight"),
}

# Used when an element carries no usable quantity
DEFAULT_VALUES: dict[str, float] = {
    "length": 3.0,
    "area": 10.0,
    "volume": 8.0,
    "weight": 500.0,
    "count": 1.0,
}

DEFAULT_UNITS: dict[str, str] = {
    "length": "m",
    "area": "m²",
    "volume": "m³",
    "count": "",
    "weight": "kg",
}


def element_quantity(element: dict[str, Any], quantity_type: str) -> float:
    """First non-zero matching quantity across the element's qto sets, else the default."""
    if quantity_type == "count":
        return 1.0

    keys = QUANTITY_KEYS.get(quantity_type, ())
    for quantities in (element.get("qtos") or {}).values():
        if not isinstance(quantities, dict):
            continue
        for key in keys:
            raw = quantities.get(key)
            try:
                value = float(raw) if raw not in (None, "") else 0.0
            except (TypeError, ValueError):
                value = 0.0
            if value:
                return value

    return DEFAULT_VALUES.get(quantity_type, 0.0)


def group_key(element: dict[str, Any], group_by: str) -> str:
    properties = properties_of(element)

    if group_by == "type":
        return str(element.get("type") or "").replace("IFC", "", 1) or "Unknown"

    if group_by == "material":
        if properties.get("Material"):
            return str(properties["Material"])
        material_pset = (element.get("psets") or {}).get("Pset_MaterialCommon")
        if isinstance(material_pset, dict):
            return str(material_pset.get("Name") or "Unknown")
        return "Unknown Material"

    if group_by == "level":
        level = properties.get("Level") or properties.get("BuildingStorey")
        return str(level) if level else "Unknown Level"

    return "Unknown"


def extract_quantities(
    elements: list[dict[str, Any]],
    quantity_type: str = "area",
    group_by: str = "none",
    unit: str = "",
) -> dict[str, Any]:
    """
    Sum a quantity over the elements, optionally grouped.

    Returns ``{"groups": {...}, "unit": str, "total": float}``. Without
    grouping the only group is "Total". Values are rounded to 2 decimals.
    """
    final_unit = unit or DEFAULT_UNITS.get(quantity_type, "")

    if not elements:
        return {"groups": {"Total": 0}, "unit": final_unit, "total": 0}

    groups: dict[str, float] = {}
    for element in elements:
        key = "Total" if group_by == "none" else group_key(element, group_by)
        groups[key] = groups.get(key, 0.0) + element_quantity(element, quantity_type)

    rounded = {key: round(value, 2) for key, value in groups.items()}
    total = round(sum(groups.values()), 2)
    logger.debug(f"Quantities ({quantity_type} by {group_by}): {rounded}")

    return {"groups": rounded, "unit": final_unit, "total": total}

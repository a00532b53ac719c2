"""Element selection by building category and placement transforms."""

import logging
from typing import Any

from ifcflow.ifc.elements import as_elements, copy_elements, element_type

logger = logging.getLogger(__name__)

# User-facing categories to IFC entity names (substring match on the type)
ELEMENT_TYPE_MAP: dict[str, list[str]] = {
    "walls": ["IFCWALL", "IFCWALLSTANDARDCASE"],
    "slabs": ["IFCSLAB", "IFCROOF"],
    "columns": ["IFCCOLUMN"],
    "beams": ["IFCBEAM"],
    "doors": ["IFCDOOR"],
    "windows": ["IFCWINDOW"],
    "stairs": ["IFCSTAIR", "IFCSTAIRFLIGHT"],
    "furniture": ["IFCFURNISHINGELEMENT"],
    "spaces": ["IFCSPACE"],
    "openings": ["IFCOPENINGELEMENT"],
}


def _is_opening(element: dict[str, Any]) -> bool:
    return "IFCOPENING" in element_type(element)


def extract_geometry(
    model: Any,
    element_type_name: str = "all",
    include_openings: bool = True,
) -> list[dict[str, Any]]:
    """
    Select the elements of one category from a model.

    ``element_type_name`` is "all" or a key of ELEMENT_TYPE_MAP; an unknown
    category selects nothing.
    """
    elements = as_elements(model)
    if not elements:
        return []

    if element_type_name == "all":
        if include_openings:
            return list(elements)
        return [element for element in elements if not _is_opening(element)]

    wanted = ELEMENT_TYPE_MAP.get(element_type_name)
    if wanted is None:
        logger.warning(f"⚠ Unknown element type '{element_type_name}'")
        return []

    selected = []
    for element in elements:
        if not include_openings and _is_opening(element):
            continue
        type_name = element_type(element)
        if any(ifc_type in type_name for ifc_type in wanted):
            selected.append(element)
    return selected


def transform_elements(
    elements: list[dict[str, Any]],
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0),
    rotation: tuple[float, float, float] = (0.0, 0.0, 0.0),
    scale: tuple[float, float, float] = (1.0, 1.0, 1.0),
) -> list[dict[str, Any]]:
    """
    Attach a placement transform to copies of the elements.

    Geometry itself is not rewritten; consumers (viewer, exporters) apply
    ``transformedGeometry`` when they place the element.
    """
    if not elements:
        return []

    transformed = copy_elements(elements)
    for element in transformed:
        element["transformedGeometry"] = {
            "translation": list(translation),
            "rotation": list(rotation),
            "scale": list(scale),
        }
    return transformed


def flag_simplified_geometry(elements: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Surface simplified geometry info on the element properties."""
    flagged = []
    for element in elements:
        geometry = element.get("geometry")
        if isinstance(geometry, dict) and geometry.get("type") == "simplified":
            element = {
                **element,
                "properties": {
                    **(element.get("properties") or {}),
                    "hasSimplifiedGeometry": True,
                    "dimensions": geometry.get("dimensions"),
                },
            }
        flagged.append(element)
    return flagged

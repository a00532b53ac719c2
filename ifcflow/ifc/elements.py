"""Helpers shared by the element transforms."""

import copy
from typing import Any

from ifcflow.graph.node import TaggedResult

SPATIAL_TYPES = frozenset({"IFCPROJECT", "IFCSITE", "IFCBUILDING", "IFCBUILDINGSTOREY", "IFCSPACE"})


def as_elements(value: Any) -> list[dict[str, Any]] | None:
    """
    Extract an element list from a node result.

    Accepts a bare list, a model / property result with an ``elements``
    list, or a TaggedResult wrapping either. Returns None for anything else.
    """
    if isinstance(value, TaggedResult):
        return as_elements(value.value)
    if isinstance(value, list):
        return value
    if isinstance(value, dict) and isinstance(value.get("elements"), list):
        return value["elements"]
    return None


def copy_elements(elements: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Deep copy so transforms never edit upstream (cached) results."""
    return copy.deepcopy(elements)


def element_type(element: dict[str, Any]) -> str:
    return str(element.get("type") or "").upper()


def properties_of(element: dict[str, Any]) -> dict[str, Any]:
    return element.get("properties") or {}


def lookup_path(element: dict[str, Any], path: str) -> Any:
    """
    Read ``Prop`` from the element properties or ``Pset.Prop`` from a
    property set. Returns None when the value is absent.
    """
    parts = path.split(".")
    if len(parts) == 1:
        return properties_of(element).get(path)
    if len(parts) == 2:
        pset_name, prop_name = parts
        pset = (element.get("psets") or {}).get(pset_name)
        if isinstance(pset, dict):
            return pset.get(prop_name)
    return None


def to_float(value: Any, default: float) -> float:
    """parseFloat-style coercion: blank or invalid values give the default."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def js_string(value: Any) -> str:
    """Stringify a property value the way the editor displays it."""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def bounds_of(element: dict[str, Any]) -> tuple[list[float], list[float]] | None:
    """Axis-aligned bounds ``geometry.bounds = {"min": [x,y,z], "max": [x,y,z]}``."""
    geometry = element.get("geometry")
    if not isinstance(geometry, dict):
        return None
    bounds = geometry.get("bounds")
    if not isinstance(bounds, dict):
        return None
    low, high = bounds.get("min"), bounds.get("max")
    if not (isinstance(low, list | tuple) and isinstance(high, list | tuple)):
        return None
    if len(low) != 3 or len(high) != 3:
        return None
    return [float(v) for v in low], [float(v) for v in high]


def box_gap(
    a: tuple[list[float], list[float]], b: tuple[list[float], list[float]]
) -> float:
    """Euclidean gap between two boxes; 0 when they touch or overlap."""
    total = 0.0
    for axis in range(3):
        delta = max(b[0][axis] - a[1][axis], a[0][axis] - b[1][axis], 0.0)
        total += delta * delta
    return total**0.5


def box_overlap_depth(
    a: tuple[list[float], list[float]], b: tuple[list[float], list[float]]
) -> float:
    """Smallest per-axis overlap; positive only when the boxes share volume."""
    return min(min(a[1][axis], b[1][axis]) - max(a[0][axis], b[0][axis]) for axis in range(3))


def box_contains(
    outer: tuple[list[float], list[float]], inner: tuple[list[float], list[float]]
) -> bool:
    return all(
        outer[0][axis] <= inner[0][axis] and inner[1][axis] <= outer[1][axis] for axis in range(3)
    )

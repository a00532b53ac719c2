"""
Spatial queries and relationship traversal.

Containment against spatial structure (storeys, buildings) uses the storey
an element is assigned to. Other queries compare axis-aligned bounds from
``geometry.bounds``; elements without bounds never match them.
"""

import logging
from typing import Any

from ifcflow.ifc.elements import (
    SPATIAL_TYPES,
    bounds_of,
    box_contains,
    box_gap,
    box_overlap_depth,
    copy_elements,
    element_type,
    properties_of,
)

logger = logging.getLogger(__name__)

TOUCH_EPSILON = 1e-6

QUERY_TYPES = ("contained", "containing", "intersecting", "touching", "within-distance")

# relation type -> (outgoing keys, incoming keys) looked up in element properties
RELATIONSHIP_KEYS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "containment": (("ContainedIn", "BuildingStorey"), ("Contains", "ContainsElements")),
    "aggregation": (("Decomposes", "AggregatedBy"), ("IsDecomposedBy", "Aggregates")),
    "voiding": (("VoidsElements",), ("HasOpenings",)),
    "material": (("Material",), ("Material",)),
    "space-boundary": (("ProvidesBoundaries",), ("BoundedBy",)),
    "connectivity": (("ConnectedTo",), ("ConnectedFrom",)),
}


def containing_storey(element: dict[str, Any]) -> str | None:
    """Name of the storey an element sits on, if recorded."""
    properties = properties_of(element)
    if properties.get("BuildingStorey"):
        return str(properties["BuildingStorey"])

    psets = element.get("psets") or {}
    level_info = psets.get("Pset_SpaceLevelInfo")
    if isinstance(level_info, dict) and level_info.get("Reference"):
        return str(level_info["Reference"])

    for props in psets.values():
        if not isinstance(props, dict):
            continue
        storey = props.get("Level") or props.get("StoreyName") or props.get("BuildingStorey")
        if storey:
            return str(storey)
    return None


def _identifiers(element: dict[str, Any]) -> set[str]:
    properties = properties_of(element)
    ids = {
        element.get("id"),
        element.get("expressId"),
        properties.get("GlobalId"),
        properties.get("Name"),
    }
    return {str(value) for value in ids if value not in (None, "")}


def _contained_in_structure(element: dict[str, Any], reference: dict[str, Any]) -> bool:
    ref_type = element_type(reference)
    if ref_type == "IFCBUILDING":
        return containing_storey(element) is not None
    if ref_type == "IFCBUILDINGSTOREY":
        return containing_storey(element) == properties_of(reference).get("Name")
    return False


def _contained_in(element: dict[str, Any], reference: dict[str, Any]) -> bool:
    container = properties_of(element).get("ContainedIn")
    if container is not None and str(container) in _identifiers(reference):
        return True
    if element_type(reference) in SPATIAL_TYPES and _contained_in_structure(element, reference):
        return True
    inner, outer = bounds_of(element), bounds_of(reference)
    return inner is not None and outer is not None and box_contains(outer, inner)


def _bounds_match(
    element: dict[str, Any], reference: dict[str, Any], query_type: str, distance: float
) -> bool:
    a, b = bounds_of(element), bounds_of(reference)
    if a is None or b is None:
        return False
    if query_type == "intersecting":
        return box_overlap_depth(a, b) > TOUCH_EPSILON
    if query_type == "touching":
        return box_gap(a, b) <= TOUCH_EPSILON and box_overlap_depth(a, b) <= TOUCH_EPSILON
    return box_gap(a, b) <= distance


def spatial_query(
    elements: list[dict[str, Any]],
    reference_elements: list[dict[str, Any]],
    query_type: str = "contained",
    distance: float = 1.0,
) -> list[dict[str, Any]]:
    """
    Select elements by their spatial relation to any reference element.

    query_type:
        contained        element lies in a reference (ContainedIn, storey, bounds)
        containing       element contains a reference
        intersecting     bounds share volume
        touching         bounds meet without sharing volume
        within-distance  bounds gap <= distance (model units)
    """
    if not elements or not reference_elements:
        return []

    if query_type not in QUERY_TYPES:
        logger.warning(f"⚠ Unknown spatial query type '{query_type}'")
        return []

    selected = []
    for element in elements:
        for reference in reference_elements:
            if query_type == "contained":
                matched = _contained_in(element, reference)
            elif query_type == "containing":
                matched = _contained_in(reference, element)
            else:
                matched = _bounds_match(element, reference, query_type, distance)
            if matched:
                selected.append(element)
                break
    return selected


def _related_values(element: dict[str, Any], keys: tuple[str, ...]) -> list[Any]:
    properties = properties_of(element)
    declared = element.get("relationships") or {}
    values: list[Any] = []
    for key in keys:
        for source in (properties, declared):
            raw = source.get(key)
            if raw in (None, "", []):
                continue
            values.extend(raw if isinstance(raw, list) else [raw])
    return values


def query_relationships(
    elements: list[dict[str, Any]],
    relation_type: str = "containment",
    direction: str = "outgoing",
) -> list[dict[str, Any]]:
    """
    Select elements taking part in a relationship and annotate them.

    Relationship targets are read from the element properties (or an
    element-level ``relationships`` dict). "outgoing" looks at what the
    element points to, "incoming" at what points to the element. Unknown
    relation types fall back to containment.
    """
    if not elements:
        return []

    if relation_type not in RELATIONSHIP_KEYS:
        logger.warning(f"⚠ Unknown relationship type '{relation_type}', using containment")
        relation_type = "containment"

    outgoing_keys, incoming_keys = RELATIONSHIP_KEYS[relation_type]
    keys = incoming_keys if direction == "incoming" else outgoing_keys

    selected = []
    for element in copy_elements(elements):
        related = _related_values(element, keys)
        if not related:
            continue
        element["relationship"] = {
            "type": relation_type,
            "direction": "incoming" if direction == "incoming" else "outgoing",
            "related": related,
        }
        selected.append(element)
    return selected

"""Clash detection results and spatial metrics."""

from typing import Any

from ifcflow.ifc.elements import bounds_of, box_gap, properties_of

SPACE_DEFAULT_AREA = 20.0
SPACE_DEFAULT_VOLUME = 60.0
AREA_PER_OCCUPANT = 10.0

AREA_KEYS = ("Area", "NetArea", "GrossArea")
VOLUME_KEYS = ("Volume", "NetVolume", "GrossVolume")


def _first_number(quantities: dict[str, Any], keys: tuple[str, ...]) -> float:
    for key in keys:
        try:
            value = float(quantities.get(key) or 0)
        except (TypeError, ValueError):
            continue
        if value:
            return value
    return 0.0


def spatial_metrics(elements: list[dict[str, Any]], metric: str = "area") -> dict[str, Any]:
    """
    Area, volume or occupancy figures for a set of elements (typically spaces).

    Quantity sets are summed; elements without any fall back to a default
    only when they are spaces. Occupancy assumes one person per 10 m².
    Unknown metrics return ``{"error": ...}``.
    """
    if not elements:
        return {"error": "No elements to analyze"}

    total_area = 0.0
    total_volume = 0.0
    for element in elements:
        qtos = element.get("qtos")
        if qtos:
            for quantities in qtos.values():
                if isinstance(quantities, dict):
                    total_area += _first_number(quantities, AREA_KEYS)
                    total_volume += _first_number(quantities, VOLUME_KEYS)
        elif "IFCSPACE" in str(element.get("type") or "").upper():
            total_area += SPACE_DEFAULT_AREA
            total_volume += SPACE_DEFAULT_VOLUME

    count = len(elements)
    if metric == "area":
        return {
            "totalArea": round(total_area, 2),
            "areaPerElement": round(total_area / count, 2),
        }
    if metric == "volume":
        return {
            "totalVolume": round(total_volume, 2),
            "volumePerElement": round(total_volume / count, 2),
        }
    if metric == "occupancy":
        occupancy = int(total_area // AREA_PER_OCCUPANT)
        density = round(occupancy / total_area, 4) if total_area else 0.0
        return {"occupancy": occupancy, "density": density}

    return {"error": "Unknown spatial metric"}


def element_key(element: dict[str, Any]) -> Any:
    """expressId, else id, else GlobalId; None when the element carries none of them."""
    for name in ("expressId", "id"):
        if element.get(name) is not None:
            return element[name]
    return properties_of(element).get("GlobalId")


def detect_clashes_by_bounds(
    elements_a: list[dict[str, Any]],
    elements_b: list[dict[str, Any]],
    tolerance: float,
) -> dict[str, Any]:
    """
    Bounding-box clash check used when no geometry viewer is attached.

    ``tolerance`` is in millimetres; bounds are in metres. Two elements
    clash when their boxes overlap or are closer than the tolerance. An
    element is never reported against itself, and each unordered pair is
    reported once.
    """
    limit = tolerance / 1000.0
    details = []
    seen: set[frozenset] = set()

    for a in elements_a:
        box_a = bounds_of(a)
        if box_a is None:
            continue
        key_a = element_key(a)
        ident_a = id(a) if key_a is None else key_a
        for b in elements_b:
            key_b = element_key(b)
            if a is b or (key_a is not None and key_a == key_b):
                continue
            pair = frozenset((ident_a, id(b) if key_b is None else key_b))
            if pair in seen:
                continue
            box_b = bounds_of(b)
            if box_b is None:
                continue
            gap = box_gap(box_a, box_b)
            if gap <= limit:
                seen.add(pair)
                details.append(
                    {
                        "id": f"clash-{len(details) + 1}",
                        "element1Id": key_a,
                        "element2Id": key_b,
                        "distance": round(gap * 1000.0, 2),
                    }
                )

    return {"clashes": len(details), "details": details}


def _describe(element: dict[str, Any] | None, express_id: Any) -> dict[str, Any]:
    if element is None:
        return {"id": express_id}
    return {
        "id": express_id,
        "type": element.get("type"),
        "name": properties_of(element).get("Name") or f"ID {express_id}",
    }


def summarize_clashes(
    results: dict[str, Any],
    elements_a: list[dict[str, Any]],
    elements_b: list[dict[str, Any]],
) -> dict[str, Any]:
    """Attach element names and types to raw clash results."""
    by_id_a = {element_key(element): element for element in elements_a}
    by_id_b = {element_key(element): element for element in elements_b}

    details = []
    for clash in results.get("details") or []:
        id_1, id_2 = clash.get("element1Id"), clash.get("element2Id")
        details.append(
            {
                "id": clash.get("id"),
                "element1": _describe(by_id_a.get(id_1), id_1),
                "element2": _describe(by_id_b.get(id_2) or by_id_a.get(id_2), id_2),
                "distance": clash.get("distance", 0),
                "location": clash.get("location"),
            }
        )

    return {
        "clashes": results.get("clashes", len(details)),
        "details": details,
        "completed": True,
    }

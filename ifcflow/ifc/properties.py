"""
Property and classification management.

Every function returns new element dicts; the input elements (which may be
cached results of another node) are left untouched.
"""

import json
import logging
from typing import Any

from ifcflow.ifc.elements import copy_elements

logger = logging.getLogger(__name__)

IS_EXTERNAL_VARIANTS = ("IsExternal", "isExternal", "ISEXTERNAL", "isexternal")

CLASSIFICATION_SYSTEMS: dict[str, str] = {
    "uniclass": "Uniclass 2015",
    "uniformat": "Uniformat II",
    "masterformat": "MasterFormat 2016",
    "omniclass": "OmniClass",
    "cobie": "COBie",
    "custom": "Custom Classification",
}

CLASSIFICATION_PSET = "Pset_ClassificationReference"


def split_property_name(property_name: str) -> tuple[str, str]:
    """Split "Pset_WallCommon:FireRating" into (pset, property); pset may be ""."""
    if ":" in property_name:
        pset, name = property_name.split(":", 1)
        return pset, name
    return "", property_name


def _find_in(container: dict[str, Any], name: str) -> tuple[bool, Any]:
    if name in container:
        return True, container[name]
    if name in IS_EXTERNAL_VARIANTS:
        for variant in IS_EXTERNAL_VARIANTS:
            if variant in container:
                return True, container[variant]
    return False, None


def find_property(element: dict[str, Any], name: str, target_pset: str = "any") -> dict[str, Any]:
    """
    Locate a property on an element.

    Lookup order: the target property set, the direct properties, then
    (only for target "any") every property set and every quantity set.
    IsExternal is matched case-insensitively.
    """
    result = {
        "exists": False,
        "value": None,
        "location": "",
        "psetName": target_pset if target_pset != "any" else "",
    }
    psets = element.get("psets") or {}

    if target_pset != "any" and isinstance(psets.get(target_pset), dict):
        found, value = _find_in(psets[target_pset], name)
        if found:
            return {**result, "exists": True, "value": value, "location": "psets"}

    properties = element.get("properties")
    if isinstance(properties, dict):
        found, value = _find_in(properties, name)
        if found:
            return {**result, "exists": True, "value": value, "location": "properties"}

    if target_pset == "any":
        for pset_name, props in psets.items():
            if not isinstance(props, dict):
                continue
            found, value = _find_in(props, name)
            if found:
                return {
                    **result,
                    "exists": True,
                    "value": value,
                    "location": "psets",
                    "psetName": pset_name,
                }

        for qto_name, quantities in (element.get("qtos") or {}).items():
            if isinstance(quantities, dict) and name in quantities:
                return {
                    **result,
                    "exists": True,
                    "value": quantities[name],
                    "location": "qtos",
                    "psetName": qto_name,
                }

    return result


def manage_properties(
    elements: list[dict[str, Any]],
    action: str = "get",
    property_name: str = "",
    property_value: Any = None,
    target_pset: str = "any",
) -> list[dict[str, Any]]:
    """
    Get, set/add or remove a property on every element.

    Each returned element carries ``propertyInfo = {name, exists, value,
    psetName}`` describing the outcome. A "Pset:Prop" name overrides
    ``target_pset``. An empty property name returns copies unchanged.
    """
    if not elements:
        return []

    updated = copy_elements(elements)
    if not property_name:
        logger.warning("⚠ No property name provided")
        return updated

    explicit_pset, name = split_property_name(property_name)
    pset = explicit_pset or target_pset or "any"
    action = action.lower()

    for element in updated:
        found = find_property(element, name, pset)

        if action == "get":
            element["propertyInfo"] = {
                "name": name,
                "exists": found["exists"],
                "value": found["value"],
                "psetName": found["psetName"],
            }

        elif action in ("set", "add"):
            element.setdefault("properties", {})[name] = property_value
            if pset != "any":
                psets = element.setdefault("psets", {})
                psets.setdefault(pset, {})[name] = property_value
            element["propertyInfo"] = {
                "name": name,
                "exists": True,
                "value": property_value,
                "psetName": pset if pset != "any" else "properties",
            }

        elif action == "remove":
            (element.get("properties") or {}).pop(name, None)
            psets = element.get("psets") or {}
            if pset != "any":
                if isinstance(psets.get(pset), dict):
                    psets[pset].pop(name, None)
            else:
                for props in psets.values():
                    if isinstance(props, dict):
                        props.pop(name, None)
                for quantities in (element.get("qtos") or {}).values():
                    if isinstance(quantities, dict):
                        quantities.pop(name, None)
            element["propertyInfo"] = {
                "name": name,
                "exists": False,
                "value": None,
                "psetName": found["psetName"],
            }

        else:
            logger.warning(f"⚠ Unknown property action '{action}'")

    return updated


def unique_property_values(elements: list[dict[str, Any]]) -> list[Any]:
    """Distinct ``propertyInfo`` values of the elements where the property exists."""
    seen: dict[str, Any] = {}
    for element in elements:
        info = element.get("propertyInfo") or {}
        if not info.get("exists"):
            continue
        value = info.get("value")
        key = json.dumps(value, sort_keys=True, default=str)
        seen.setdefault(key, value)
    return list(seen.values())


def property_value_from_result(value: Any) -> Any:
    """
    Reduce an upstream result to a single property value.

    A property result (``{"elements": [...with propertyInfo]}``) yields its
    only distinct value, or the first found value when there are several.
    Anything else is used as is.
    """
    if not isinstance(value, dict):
        return value

    elements = value.get("elements")
    if not (isinstance(elements, list) and elements and elements[0].get("propertyInfo")):
        return value

    unique = value.get("uniqueValues")
    if not isinstance(unique, list):
        unique = unique_property_values(elements)
    if len(unique) == 1:
        return unique[0]

    first = elements[0]["propertyInfo"]
    if first.get("exists"):
        return first.get("value")
    return value


def manage_classifications(
    elements: list[dict[str, Any]],
    system: str = "uniclass",
    action: str = "get",
    code: str = "",
) -> list[dict[str, Any]]:
    """
    Read or assign classification references.

    "get" attaches ``classifications`` collected from the Classification
    property and any classification property set. Any other action assigns
    ``code`` in the given system.
    """
    if not elements:
        return []

    system_name = CLASSIFICATION_SYSTEMS.get(system, system)
    updated = copy_elements(elements)

    if action == "get":
        for element in updated:
            classifications: list[Any] = []
            direct = (element.get("properties") or {}).get("Classification")
            if direct:
                classifications.append(direct)

            for pset_name, props in (element.get("psets") or {}).items():
                if "Classification" not in pset_name or not isinstance(props, dict):
                    continue
                classifications.append(
                    {
                        "system": props.get("System") or props.get("Name") or "Unknown",
                        "code": props.get("Code") or props.get("ItemReference") or "",
                        "description": props.get("Description") or "",
                    }
                )
            element["classifications"] = classifications
        return updated

    for element in updated:
        psets = element.setdefault("psets", {})
        psets[CLASSIFICATION_PSET] = {
            **(psets.get(CLASSIFICATION_PSET) or {}),
            "System": system_name,
            "Code": code,
            "Name": system_name,
            "ItemReference": code,
            "Description": f"{system_name} classification {code}",
        }
        element["properties"] = {
            **(element.get("properties") or {}),
            "Classification": {"System": system_name, "Code": code},
        }
    return updated

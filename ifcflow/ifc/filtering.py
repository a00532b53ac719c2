"""Property-based element filtering."""

import logging
from collections.abc import Callable
from typing import Any

from ifcflow.ifc.elements import js_string, lookup_path

logger = logging.getLogger(__name__)

OPERATORS: dict[str, Callable[[str, str], bool]] = {
    "equals": lambda actual, expected: actual == expected,
    "contains": lambda actual, expected: expected in actual,
    "startsWith": lambda actual, expected: actual.startswith(expected),
    "endsWith": lambda actual, expected: actual.endswith(expected),
}


def filter_elements(
    elements: list[dict[str, Any]],
    property_path: str,
    operator: str = "equals",
    value: Any = "",
) -> list[dict[str, Any]]:
    """
    Keep the elements whose property matches.

    ``property_path`` is either a direct property ("Name") or a property set
    lookup ("Pset_WallCommon.FireRating"). Values are compared as strings.
    Elements without the property, and any unknown operator, never match.
    """
    if not elements:
        return []

    compare = OPERATORS.get(operator)
    if compare is None:
        logger.warning(f"⚠ Unknown filter operator '{operator}'")
        return []

    expected = js_string(value) if value is not None else ""
    matched = []
    for element in elements:
        actual = lookup_path(element, property_path)
        if actual is None:
            continue
        if compare(js_string(actual), expected):
            matched.append(element)
    return matched

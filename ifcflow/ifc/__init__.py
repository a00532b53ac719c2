"""Pure, deterministic transforms over IFC element dicts."""

from ifcflow.ifc.analysis import detect_clashes_by_bounds, spatial_metrics, summarize_clashes
from ifcflow.ifc.elements import as_elements
from ifcflow.ifc.export import export_data
from ifcflow.ifc.filtering import filter_elements
from ifcflow.ifc.geometry import ELEMENT_TYPE_MAP, extract_geometry, transform_elements
from ifcflow.ifc.properties import (
    find_property,
    manage_classifications,
    manage_properties,
    property_value_from_result,
)
from ifcflow.ifc.quantities import extract_quantities
from ifcflow.ifc.spatial import query_relationships, spatial_query

__all__ = [
    "as_elements",
    "ELEMENT_TYPE_MAP",
    "extract_geometry",
    "transform_elements",
    "filter_elements",
    "extract_quantities",
    "find_property",
    "manage_properties",
    "manage_classifications",
    "property_value_from_result",
    "spatial_query",
    "query_relationships",
    "spatial_metrics",
    "detect_clashes_by_bounds",
    "summarize_clashes",
    "export_data",
]

"""
Tests for the element transforms behind the built-in nodes.
"""

import io
import json

import pytest
from openpyxl import load_workbook

from ifcflow.graph.node import TaggedResult
from ifcflow.ifc.analysis import detect_clashes_by_bounds, spatial_metrics, summarize_clashes
from ifcflow.ifc.elements import as_elements, js_string, lookup_path
from ifcflow.ifc.export import export_data, sheet_title
from ifcflow.ifc.filtering import filter_elements
from ifcflow.ifc.geometry import extract_geometry, flag_simplified_geometry, transform_elements
from ifcflow.ifc.properties import (
    manage_classifications,
    manage_properties,
    property_value_from_result,
)
from ifcflow.ifc.quantities import extract_quantities
from ifcflow.ifc.spatial import query_relationships, spatial_query


def box(low, high):
    return {"bounds": {"min": list(low), "max": list(high)}}


@pytest.fixture
def elements():
    return [
        {
            "id": "w1",
            "expressId": 1,
            "type": "IFCWALL",
            "properties": {"Name": "Wall A", "Material": "Concrete", "BuildingStorey": "Level 1"},
            "psets": {"Pset_WallCommon": {"IsExternal": True, "FireRating": "REI60"}},
            "qtos": {"Qto_WallBaseQuantities": {"NetArea": 12.5, "NetVolume": 3.0}},
            "geometry": box((0, 0, 0), (4, 0.2, 3)),
        },
        {
            "id": "w2",
            "expressId": 2,
            "type": "IFCWALLSTANDARDCASE",
            "properties": {"Name": "Wall B", "Material": "Brick", "BuildingStorey": "Level 2"},
            "psets": {"Pset_WallCommon": {"IsExternal": False}},
            "qtos": {"Qto_WallBaseQuantities": {"NetArea": 7.5}},
            "geometry": box((10, 0, 0), (14, 0.2, 3)),
        },
        {
            "id": "d1",
            "expressId": 3,
            "type": "IFCDOOR",
            "properties": {"Name": "Door 1", "BuildingStorey": "Level 1"},
            "geometry": box((1, -0.1, 0), (2, 0.3, 2.1)),
        },
        {
            "id": "o1",
            "expressId": 4,
            "type": "IFCOPENINGELEMENT",
            "properties": {"Name": "Opening"},
        },
    ]


# ---- Element helpers ----


def test_as_elements_accepts_lists_models_and_tagged_results(elements):
    assert as_elements(elements) is elements
    assert as_elements({"elements": elements}) is elements
    assert as_elements(TaggedResult("x", {"elements": elements})) is elements
    assert as_elements("text") is None
    assert as_elements({"error": "x"}) is None


def test_lookup_path_reads_properties_and_psets(elements):
    assert lookup_path(elements[0], "Name") == "Wall A"
    assert lookup_path(elements[0], "Pset_WallCommon.FireRating") == "REI60"
    assert lookup_path(elements[0], "Pset_Missing.X") is None
    assert lookup_path(elements[0], "a.b.c") is None


def test_js_string():
    assert js_string(True) == "true"
    assert js_string(None) == "null"
    assert js_string(3.0) == "3"
    assert js_string(2.5) == "2.5"


# ---- Geometry ----


def test_extract_geometry_by_category(elements):
    walls = extract_geometry({"elements": elements}, "walls")
    assert [e["id"] for e in walls] == ["w1", "w2"]


def test_extract_geometry_can_skip_openings(elements):
    assert len(extract_geometry(elements, "all")) == 4
    assert [e["id"] for e in extract_geometry(elements, "all", include_openings=False)] == [
        "w1",
        "w2",
        "d1",
    ]


def test_extract_geometry_unknown_category_selects_nothing(elements):
    assert extract_geometry(elements, "chimneys") == []
    assert extract_geometry(None) == []


def test_transform_attaches_placement_to_copies(elements):
    moved = transform_elements(elements[:1], translation=(1.0, 2.0, 3.0))

    assert moved[0]["transformedGeometry"] == {
        "translation": [1.0, 2.0, 3.0],
        "rotation": [0.0, 0.0, 0.0],
        "scale": [1.0, 1.0, 1.0],
    }
    assert "transformedGeometry" not in elements[0]


def test_flag_simplified_geometry():
    flagged = flag_simplified_geometry(
        [{"id": "a", "geometry": {"type": "simplified", "dimensions": [1, 2, 3]}}]
    )
    assert flagged[0]["properties"] == {"hasSimplifiedGeometry": True, "dimensions": [1, 2, 3]}


# ---- Filtering ----


def test_filter_equals_and_pset_paths(elements):
    assert [e["id"] for e in filter_elements(elements, "Material", "equals", "Brick")] == ["w2"]
    external = filter_elements(elements, "Pset_WallCommon.IsExternal", "equals", "true")
    assert [e["id"] for e in external] == ["w1"]


def test_filter_string_operators(elements):
    assert [e["id"] for e in filter_elements(elements, "Name", "startsWith", "Wall")] == [
        "w1",
        "w2",
    ]
    assert [e["id"] for e in filter_elements(elements, "Name", "endsWith", "1")] == ["d1"]
    assert [e["id"] for e in filter_elements(elements, "Name", "contains", "pen")] == ["o1"]


def test_filter_unknown_operator_matches_nothing(elements):
    assert filter_elements(elements, "Name", "regex", ".*") == []


# ---- Quantities ----


def test_quantities_total(elements):
    result = extract_quantities(elements[:2], "area")
    assert result == {"groups": {"Total": 20.0}, "unit": "m²", "total": 20.0}


def test_quantities_default_when_missing(elements):
    result = extract_quantities(elements[2:3], "volume")
    assert result["total"] == 8.0


def test_quantities_grouped_by_material_and_type(elements):
    by_material = extract_quantities(elements[:3], "area", "material")
    assert by_material["groups"] == {"Concrete": 12.5, "Brick": 7.5, "Unknown Material": 10.0}
    assert by_material["total"] == 30.0

    by_type = extract_quantities(elements[:3], "count", "type")
    assert by_type["groups"] == {"WALL": 1.0, "WALLSTANDARDCASE": 1.0, "DOOR": 1.0}


def test_quantities_empty_input():
    assert extract_quantities([], "length", unit="mm") == {
        "groups": {"Total": 0},
        "unit": "mm",
        "total": 0,
    }


# ---- Properties ----


def test_get_property_reports_location(elements):
    result = manage_properties(elements[:2], "get", "FireRating")

    assert result[0]["propertyInfo"] == {
        "name": "FireRating",
        "exists": True,
        "value": "REI60",
        "psetName": "Pset_WallCommon",
    }
    assert result[1]["propertyInfo"]["exists"] is False


def test_is_external_matches_any_case(elements):
    element = {"properties": {"isexternal": True}}
    result = manage_properties([element], "get", "IsExternal")
    assert result[0]["propertyInfo"]["value"] is True


def test_set_property_in_named_pset_leaves_input_untouched(elements):
    result = manage_properties(elements[:1], "set", "Pset_Custom:Status", "Approved")

    assert result[0]["psets"]["Pset_Custom"]["Status"] == "Approved"
    assert result[0]["properties"]["Status"] == "Approved"
    assert "Pset_Custom" not in elements[0]["psets"]


def test_remove_property(elements):
    result = manage_properties(elements[:1], "remove", "FireRating")

    assert "FireRating" not in result[0]["psets"]["Pset_WallCommon"]
    assert result[0]["propertyInfo"]["exists"] is False


def test_property_value_from_result():
    result = {
        "elements": [
            {"propertyInfo": {"exists": True, "value": "A"}},
            {"propertyInfo": {"exists": True, "value": "A"}},
        ]
    }
    assert property_value_from_result(result) == "A"
    assert property_value_from_result("plain") == "plain"


def test_classification_assign_and_get(elements):
    assigned = manage_classifications(elements[:1], "uniclass", "set", "EF_25_10")
    pset = assigned[0]["psets"]["Pset_ClassificationReference"]
    assert pset["System"] == "Uniclass 2015"
    assert pset["Code"] == "EF_25_10"

    read = manage_classifications(assigned, "uniclass", "get")
    assert {"System": "Uniclass 2015", "Code": "EF_25_10"} in read[0]["classifications"]


# ---- Spatial ----


def test_spatial_intersecting_and_touching(elements):
    walls = elements[:2]
    door = [elements[2]]

    assert [e["id"] for e in spatial_query(walls, door, "intersecting")] == ["w1"]
    touching = spatial_query(
        [{"id": "t", "geometry": box((4, 0, 0), (5, 0.2, 3))}], walls, "touching"
    )
    assert [e["id"] for e in touching] == ["t"]


def test_spatial_within_distance(elements):
    probe = [{"id": "p", "geometry": box((15, 0, 0), (16, 1, 1))}]
    assert spatial_query(probe, elements[:2], "within-distance", 0.5) == []
    assert len(spatial_query(probe, elements[:2], "within-distance", 2.0)) == 1


def test_spatial_contained_in_storey(elements):
    storey = [{"id": "s1", "type": "IFCBUILDINGSTOREY", "properties": {"Name": "Level 1"}}]
    contained = spatial_query(elements, storey, "contained")
    assert [e["id"] for e in contained] == ["w1", "d1"]


def test_spatial_unknown_query_type(elements):
    assert spatial_query(elements, elements, "orbiting") == []


def test_relationships_annotate_matches(elements):
    related = query_relationships(elements, "containment", "outgoing")

    assert [e["id"] for e in related] == ["w1", "w2", "d1"]
    assert related[0]["relationship"] == {
        "type": "containment",
        "direction": "outgoing",
        "related": ["Level 1"],
    }


# ---- Analysis ----


def test_bounds_clash_detection(elements):
    raw = detect_clashes_by_bounds(elements[:2], [elements[2]], tolerance=10)

    assert raw["clashes"] == 1
    assert raw["details"][0]["element1Id"] == 1
    assert raw["details"][0]["element2Id"] == 3

    summary = summarize_clashes(raw, elements[:2], [elements[2]])
    assert summary["completed"] is True
    assert summary["details"][0]["element2"] == {"id": 3, "type": "IFCDOOR", "name": "Door 1"}


def test_clash_never_reports_element_against_itself(elements):
    raw = detect_clashes_by_bounds(elements[:1], elements[:1], tolerance=10)
    assert raw == {"clashes": 0, "details": []}


def test_bounds_clash_falls_back_to_element_ids():
    box = {"bounds": {"min": [0, 0, 0], "max": [1, 1, 1]}}
    a = {"id": "a", "geometry": box}
    b = {"id": "b", "geometry": box}
    anonymous = {"geometry": box}

    assert detect_clashes_by_bounds([a], [b], tolerance=10)["details"] == [
        {"id": "clash-1", "element1Id": "a", "element2Id": "b", "distance": 0.0}
    ]
    assert detect_clashes_by_bounds([anonymous], [anonymous], tolerance=10)["clashes"] == 0
    assert detect_clashes_by_bounds([anonymous], [dict(anonymous)], tolerance=10)["clashes"] == 1


def test_spatial_metrics():
    spaces = [
        {"type": "IFCSPACE", "qtos": {"Qto_SpaceBaseQuantities": {"NetArea": 30, "NetVolume": 90}}},
        {"type": "IFCSPACE"},
    ]

    assert spatial_metrics(spaces, "area") == {"totalArea": 50.0, "areaPerElement": 25.0}
    assert spatial_metrics(spaces, "volume") == {"totalVolume": 150.0, "volumePerElement": 75.0}
    assert spatial_metrics(spaces, "occupancy") == {"occupancy": 5, "density": 0.1}
    assert spatial_metrics(spaces, "noise") == {"error": "Unknown spatial metric"}
    assert spatial_metrics([], "area") == {"error": "No elements to analyze"}


# ---- Export ----


def test_export_csv_quotes_cells(elements):
    elements[0]["properties"]["Name"] = 'Wall "A", north'
    csv_text = export_data(elements[:2], "csv", columns="Name,Material")

    assert csv_text == 'Name,Material\n"Wall ""A"", north",Concrete\nWall B,Brick\n'


def test_export_csv_quotes_carriage_returns(elements):
    elements[0]["properties"]["Name"] = "Wall\rA"
    csv_text = export_data(elements[:1], "csv", columns="Name")

    assert csv_text == 'Name\n"Wall\rA"\n'


def test_sheet_title_drops_characters_excel_rejects():
    assert sheet_title("walls/level-1") == "wallslevel-1"
    assert sheet_title("Level [1]: *cores?*") == "Level 1 cores"
    assert sheet_title("x" * 40) == "x" * 31
    assert sheet_title("//") == "Elements"


def test_export_json_rows(elements):
    rows = json.loads(export_data(elements[:1], "json", columns="Name,Pset_WallCommon.FireRating"))
    assert rows == [{"Name": "Wall A", "Pset_WallCommon.FireRating": "REI60"}]


def test_export_excel_workbook(elements):
    data = export_data(elements[:2], "excel", file_name="walls", columns="Name,Material")

    wb = load_workbook(io.BytesIO(data))
    ws = wb.active
    assert ws.title == "walls"
    assert [cell.value for cell in ws[1]] == ["Name", "Material"]
    assert [cell.value for cell in ws[3]] == ["Wall B", "Brick"]


def test_export_empty_and_unsupported():
    assert export_data([], "csv") == ""
    assert export_data([], "json") == "[]"
    with pytest.raises(ValueError):
        export_data([], "pdf")

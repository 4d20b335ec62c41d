from datetime import datetime, timezone
from app.application.filtering import (
    apply_filters,
    apply_ordering,
    apply_pagination,
    distinct_values,
    parse_order_by,
    resolve_field,
)
from app.application.schemas import PurchaseRequest

ITEMS = [
    {"name": "Cordless Drill", "sku": "DR-100", "category": "Tools", "status": "in_stock", "price": 120.0},
    {"name": "Hammer", "sku": "HM-200", "category": "Tools", "status": "low_stock", "price": 15.0},
    {"name": "Paint Roller", "sku": "PR-300", "category": "Paint", "status": "out_of_stock", "price": 8.5},
    {"name": "Drill Bits", "sku": "DB-400", "category": "Accessories", "status": "in_stock", "price": None},
]

def test_search_matches_any_field_case_insensitively():
    result = apply_filters(ITEMS, search="drill", search_fields=("name", "sku"))
    assert [i["sku"] for i in result] == ["DR-100", "DB-400"]
    result = apply_filters(ITEMS, search="hm-", search_fields=("name", "sku"))
    assert [i["name"] for i in result] == ["Hammer"]

def test_all_and_none_disable_equality():
    assert apply_filters(ITEMS, equals={"category": "all", "status": None}) == ITEMS
    assert apply_filters(ITEMS, equals={"category": "Tools"}) == ITEMS[:2]

def test_ranges_are_inclusive_and_skip_missing_values():
    result = apply_filters(ITEMS, ranges={"price": (8.5, 120.0)})
    assert [i["sku"] for i in result] == ["DR-100", "HM-200", "PR-300"]
    assert apply_filters(ITEMS, ranges={"price": (None, 10)}) == [ITEMS[2]]

def test_filtering_is_pure_and_order_preserving():
    snapshot = [dict(i) for i in ITEMS]
    first = apply_filters(ITEMS, search="r", search_fields=("name",), equals={"category": "Tools"})
    second = apply_filters(ITEMS, search="r", search_fields=("name",), equals={"category": "Tools"})
    assert first == second
    assert ITEMS == snapshot
    positions = [ITEMS.index(i) for i in first]
    assert positions == sorted(positions)

def test_dotted_paths_on_models():
    request = PurchaseRequest.model_validate({"_id": "r1", "product": {"name": "Widget", "sku": "W-1"}})
    assert resolve_field(request, "product.name") == "Widget"
    assert resolve_field(request, "client.name") == "Unknown Client"
    assert resolve_field(request, "missing.path") is None
    assert apply_filters([request], search="widg", search_fields=("product.name",)) == [request]

def test_date_range_accepts_naive_bounds():
    requests = [
        PurchaseRequest.model_validate({"_id": "old", "createdAt": "2024-01-05T10:00:00Z"}),
        PurchaseRequest.model_validate({"_id": "new", "createdAt": "2024-03-05T10:00:00Z"}),
    ]
    result = apply_filters(requests, ranges={"created_at": (datetime(2024, 2, 1), None)})
    assert [r.id for r in result] == ["new"]
    result = apply_filters(requests, ranges={"created_at": (None, datetime(2024, 2, 1, tzinfo=timezone.utc))})
    assert [r.id for r in result] == ["old"]

def test_ordering_multi_key_with_missing_last():
    ordered = apply_ordering(ITEMS, ["category", "-price"])
    assert [i["sku"] for i in ordered] == ["DB-400", "PR-300", "DR-100", "HM-200"]
    ordered = apply_ordering(ITEMS, ["-price"])
    assert [i["sku"] for i in ordered][-1] == "DB-400"

def test_ordering_leaves_input_alone():
    before = list(ITEMS)
    apply_ordering(ITEMS, ["-name"])
    assert ITEMS == before

def test_parse_order_by():
    assert parse_order_by(None) == []
    assert parse_order_by("-created_at, name") == ["-created_at", "name"]

def test_pagination():
    assert apply_pagination(ITEMS, 1, 2) == ITEMS[1:3]
    assert apply_pagination(ITEMS, -3, None) == ITEMS

def test_distinct_values_keep_first_seen_order():
    assert distinct_values(ITEMS, "category") == ["Tools", "Paint", "Accessories"]

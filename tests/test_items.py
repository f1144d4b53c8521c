from shiptrack.items import build_item, flatten, group_items


def test_group_items_merges_po_numbers_case_insensitively(item_rows):
    groups = group_items(item_rows)

    assert list(groups) == ["po-1", "po-3"]
    assert [item.item_name for item in groups["po-1"]] == ["Widget", "Gadget"]
    assert [item.po_number for item in groups["po-1"]] == ["PO-1", "po-1"]


def test_group_items_defaults_missing_fields(item_rows):
    groups = group_items(item_rows)
    gadget = groups["po-1"][1]
    sprocket = groups["po-3"][0]

    assert gadget.quantity == 0
    assert gadget.color == "Blue"
    assert sprocket.color == ""
    assert sprocket.quantity == "10"


def test_build_item_skips_rows_without_po_number():
    assert build_item({"item_name": "Orphan"}) is None
    assert build_item({"po_number": "", "item_name": "Orphan"}) is None


def test_flatten_limits_to_requested_purchase_orders(item_rows):
    groups = group_items(item_rows)

    assert [item.item_name for item in flatten(groups)] == ["Widget", "Gadget", "Sprocket"]
    assert [item.item_name for item in flatten(groups, {"po-3"})] == ["Sprocket"]
    assert flatten(groups, set()) == []

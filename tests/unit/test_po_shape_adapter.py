from decimal import Decimal

import pytest

from po_ingest.services.po_errors import MalformedInput
from po_ingest.services.po_shape_adapter import adapt, detect_shape, page_keys
from po_ingest.services.po_types import CanonicalOrder, ExtractionBundle
from tests._helpers import canonical_order, extraction_line, extraction_page


def test_detect_shape_canonical():
    assert isinstance(detect_shape(canonical_order()), CanonicalOrder)


def test_detect_shape_extraction():
    body = {"extracted_json": {"page_1": extraction_page()}}
    assert isinstance(detect_shape(body), ExtractionBundle)


@pytest.mark.parametrize("empty", [None, {}, ""])
def test_detect_shape_falsy_extracted_json_is_canonical(empty):
    body = canonical_order(extracted_json=empty)
    assert isinstance(detect_shape(body), CanonicalOrder)


@pytest.mark.parametrize("body", [[], "PO-1", 42, None])
def test_detect_shape_rejects_non_object(body):
    with pytest.raises(MalformedInput):
        detect_shape(body)


def test_detect_shape_rejects_non_object_extracted_json():
    with pytest.raises(MalformedInput):
        detect_shape({"extracted_json": ["page_1"]})


# ---------------- canonical ----------------


def test_canonical_unwraps_line_fields():
    adapted = adapt(canonical_order())
    assert adapted.source == "canonical"
    assert adapted.header.unique_order_id == "PO-1"
    assert adapted.header.client_id == "Acme"
    assert adapted.header.currency_conversion_rate == Decimal("1.0")

    [line] = adapted.line_items
    assert line.product_id == "P1"
    assert line.quantity == "2"
    assert line.unit_price == "10.00"
    assert line.unit is None


def test_canonical_accepts_bare_values_and_keeps_header_fields():
    body = canonical_order(
        vendor_id="10",
        order_date="03/05/2024",
        currency_code="USD",
        currency_conversion_rate="1.25",
        line_items=[{"product_id": "P2", "quantity": 4, "size": "6x750ml", "upc": {"value": "0123"}}],
    )
    adapted = adapt(body)
    assert adapted.header.vendor_id == "10"
    assert adapted.header.order_date == "03/05/2024"
    assert adapted.header.currency_conversion_rate == "1.25"

    [line] = adapted.line_items
    assert (line.product_id, line.quantity, line.size, line.upc) == ("P2", 4, "6x750ml", "0123")


def test_canonical_ignores_unknown_fields():
    adapted = adapt(canonical_order(something_else="x"))
    assert not hasattr(adapted.header, "something_else")


def test_canonical_without_line_items():
    body = canonical_order()
    del body["line_items"]
    assert adapt(body).line_items == []


def test_canonical_non_list_line_items_treated_as_empty():
    assert adapt(canonical_order(line_items={"product_id": "P1"})).line_items == []


def test_canonical_rejects_non_object_line_item():
    with pytest.raises(MalformedInput) as ei:
        adapt(canonical_order(line_items=[{"product_id": "P1"}, "P2"]))
    assert "line_items[1]" in ei.value.message


# ---------------- extraction ----------------


def _extraction_body():
    return {
        "extracted_json": {
            "page_1": extraction_page(
                extraction_line("A1", pack_quantity="3", unit_price="$12.50", case_quantity="CASE", weight="4.5"),
                po_number={"value": "PO-77"},
                po_date={"value": "03/05/2024"},
                due_date={"value": "ASAP"},
                customer_details={"buyer_info": {"value": "Acme"}},
                vendor_details={"vendor_id": {"value": "10"}},
                shipping_details={
                    "ship_to": {"value": "Newark"},
                    "shipping_instruction": {"value": "Dock 4"},
                    "ship_date": {"value": "2024-03-01"},
                },
            ),
            "page_10": extraction_page(extraction_line("J10")),
            "page_2": extraction_page(extraction_line("B2"), extraction_line("B3")),
            "metadata": {"pages": 3},
        }
    }


def test_page_keys_numeric_order():
    assert page_keys(_extraction_body()["extracted_json"]) == ["page_1", "page_2", "page_10"]


def test_extraction_header_mapping():
    adapted = adapt(_extraction_body())
    h = adapted.header
    assert adapted.source == "extraction"
    assert h.unique_order_id == "PO-77"
    assert h.client_id == "Acme"
    assert h.vendor_id == "10"
    assert h.destination == "Newark"
    assert h.order_date == "03/05/2024"
    assert h.estimated_delivery_date == "ASAP"
    assert h.special_instruction == "Dock 4"
    assert h.origin_ship_date == "2024-03-01"
    assert h.currency_code == ""
    assert h.currency_conversion_rate == Decimal("1.0")


def test_extraction_merges_pages_in_order():
    adapted = adapt(_extraction_body())
    assert [li.product_id for li in adapted.line_items] == ["A1", "B2", "B3", "J10"]


def test_extraction_line_mapping():
    first = adapt(_extraction_body()).line_items[0]
    assert first.quantity == Decimal(3)
    assert first.unit == "CASE"
    assert first.unit_price == "$12.50"
    assert first.weight == "4.5"


def test_extraction_pack_quantity_is_integer_part():
    body = {"extracted_json": {"page_1": extraction_page(extraction_line("A1", pack_quantity="12.9 cases"))}}
    [line] = adapt(body).line_items
    assert line.quantity == Decimal(12)


def test_extraction_unparseable_pack_quantity_is_zero():
    body = {"extracted_json": {"page_1": extraction_page(extraction_line("A1", pack_quantity="n/a"))}}
    [line] = adapt(body).line_items
    assert line.quantity == Decimal(0)


def test_extraction_page_without_items_contributes_nothing():
    body = {"extracted_json": {"page_1": extraction_page(extraction_line("A1")), "page_2": {"priority_fields": {}}}}
    assert len(adapt(body).line_items) == 1


def test_extraction_no_pages():
    with pytest.raises(MalformedInput) as ei:
        adapt({"extracted_json": {"metadata": {}}})
    assert ei.value.message == "Invalid extracted_json format: no pages found"


def test_extraction_missing_page_1():
    with pytest.raises(MalformedInput) as ei:
        adapt({"extracted_json": {"page_2": extraction_page(extraction_line("B2"))}})
    assert ei.value.message == "Invalid extracted_json format: missing page_1"

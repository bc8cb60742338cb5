# tests/services/test_po_ingest_service.py
from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from po_ingest.db.session import Database
from po_ingest.services.po_errors import MalformedInput, PersistenceFailure
from po_ingest.services.po_ingest_service import PurchaseOrderIngestService
from tests._helpers import (
    BOOM_PRODUCT,
    canonical_order,
    count_rows,
    extraction_line,
    extraction_page,
    install_item_insert_failure,
)

pytestmark = pytest.mark.asyncio


def _ingests(source: str, result: str) -> float:
    return REGISTRY.get_sample_value("po_ingest_total", {"source": source, "result": result}) or 0.0


async def test_canonical_ingest(db: Database):
    before = _ingests("canonical", "created")
    result = await PurchaseOrderIngestService(db).ingest(canonical_order())

    data = result.to_data()
    assert result.source == "canonical"
    assert data["order"]["unique_order_id"] == "PO-1"
    assert data["order"]["client_id"] == "2"
    assert data["resolution"]["supplier"] == "resolved"
    assert len(data["items"]) == 1
    assert _ingests("canonical", "created") == before + 1


async def test_extraction_ingest_merges_pages(db: Database):
    body = {
        "extracted_json": {
            "page_1": extraction_page(
                extraction_line("P1", pack_quantity="2"),
                po_number={"value": "PO-X"},
                customer_details={"buyer_info": {"value": "Globex"}},
            ),
            "page_2": extraction_page(extraction_line("P2"), extraction_line("P3")),
        }
    }
    result = await PurchaseOrderIngestService(db).ingest(body)
    assert result.source == "extraction"
    assert [it["product_id"] for it in result.persisted.items] == ["P1", "P2", "P3"]
    assert result.persisted.order["client_id"] == "3"
    assert result.persisted.order["currency_code"] == ""


async def test_malformed_input_writes_nothing(db: Database):
    before = _ingests("unknown", "malformed")
    with pytest.raises(MalformedInput):
        await PurchaseOrderIngestService(db).ingest({"extracted_json": {"page_2": extraction_page()}})
    assert await count_rows(db, "psi_purchase_orders") == 0
    assert _ingests("unknown", "malformed") == before + 1


async def test_unresolved_references_still_persist(db: Database):
    body = canonical_order(client_id="Initech", vendor_id="Unknown Vendor", destination="Mars")
    result = await PurchaseOrderIngestService(db).ingest(body)
    order = result.persisted.order
    assert order["client_id"] == "Initech"
    assert order["vendor_id"] == "Unknown Vendor"
    assert order["destination"] == "Mars"
    assert order["supplier_name"] is None
    assert result.refs.summary()["destination"] == "not_found"


async def test_persistence_failure_propagates(db: Database):
    await install_item_insert_failure(db)
    before = _ingests("canonical", "failed")
    body = canonical_order(line_items=[{"product_id": "P1"}, {"product_id": BOOM_PRODUCT}])
    with pytest.raises(PersistenceFailure):
        await PurchaseOrderIngestService(db).ingest(body)
    assert await count_rows(db, "psi_purchase_orders") == 0
    assert _ingests("canonical", "failed") == before + 1


async def test_location_fields_resolved_but_stored_raw(db: Database):
    body = canonical_order(location_group="east", location="nj")
    result = await PurchaseOrderIngestService(db).ingest(body)

    summary = result.to_data()["resolution"]
    assert summary["location_group"] == "resolved"
    assert summary["location"] == "resolved"
    assert result.refs.location_group.value == "East Coast"
    assert result.refs.location.value == "NJ-01"

    order = result.persisted.order
    assert order["location_group"] == "east"
    assert order["location"] == "nj"

# po_ingest/api/routers/purchase_orders.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from po_ingest.api.deps import get_ingest_service
from po_ingest.api.errors import envelope
from po_ingest.schemas.purchase_order import ApiResponse, PurchaseOrderCreatedData
from po_ingest.services.po_ingest_service import PurchaseOrderIngestService

router = APIRouter(prefix="/api/purchase-orders", tags=["purchase-orders"])


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse,
    responses={400: {"model": ApiResponse}, 500: {"model": ApiResponse}},
)
async def create_purchase_order(
    body: Any = Body(..., description="规范形态，或带 extracted_json 的多页抽取形态"),
    svc: PurchaseOrderIngestService = Depends(get_ingest_service),
) -> JSONResponse:
    result = await svc.ingest(body)
    data = PurchaseOrderCreatedData(**result.to_data())
    return envelope(
        201,
        success=True,
        message="Purchase order created successfully",
        data=data.model_dump(),
    )

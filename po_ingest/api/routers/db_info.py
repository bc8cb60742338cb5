# po_ingest/api/routers/db_info.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from po_ingest.api.deps import get_db_info_service
from po_ingest.api.errors import envelope
from po_ingest.schemas.purchase_order import ApiResponse, DbInfoData
from po_ingest.services.db_info_service import DbInfoService

router = APIRouter(prefix="/api", tags=["diag"])


@router.get("/db-info", response_model=ApiResponse, responses={500: {"model": ApiResponse}})
async def get_db_info(svc: DbInfoService = Depends(get_db_info_service)) -> JSONResponse:
    info = DbInfoData.model_validate(await svc.describe())
    return envelope(
        200,
        success=True,
        message="Database info",
        data=info.model_dump(by_alias=True),
    )

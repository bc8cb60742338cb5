# po_ingest/api/deps.py
from __future__ import annotations

from fastapi import Depends, Request

from po_ingest.core.config import AppSettings, get_settings
from po_ingest.db.session import Database
from po_ingest.services.db_info_service import DbInfoService
from po_ingest.services.po_ingest_service import PurchaseOrderIngestService


def get_database(request: Request) -> Database:
    """lifespan 中打开的存储能力（app.state.db）。"""
    return request.app.state.db


def get_ingest_service(db: Database = Depends(get_database)) -> PurchaseOrderIngestService:
    return PurchaseOrderIngestService(db)


def get_db_info_service(
    db: Database = Depends(get_database),
    settings: AppSettings = Depends(get_settings),
) -> DbInfoService:
    return DbInfoService(db, row_count_cap=settings.DB_INFO_ROW_COUNT_CAP)

# po_ingest/db/base.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import DeclarativeBase

log = logging.getLogger("poingest.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base（仅本服务自有的两张表）"""

    pass


async def init_schema(engine: AsyncEngine) -> None:
    """
    建本服务自有表（已存在则跳过）。
    参考表（crm_classes / crm_vendors / psi_products ...）属于既有库，不在这里建。
    """
    # 注册模型到 Base.metadata
    import po_ingest.models  # noqa: F401

    log.info("Creating psi_purchase_orders / psi_purchase_order_items tables (if missing) ...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database schema ready")

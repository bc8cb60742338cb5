# po_ingest/services/po_persistence.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from po_ingest.db.session import Database
from po_ingest.db.uow import UnitOfWork
from po_ingest.models.psi_purchase_order import PsiPurchaseOrder
from po_ingest.models.psi_purchase_order_item import PsiPurchaseOrderItem
from po_ingest.obs.metrics import po_line_items_total
from po_ingest.services.field_normalizer import (
    normalize_date,
    normalize_optional_price,
    normalize_quantity,
    normalize_rate,
    normalize_text,
    normalize_unit,
    normalize_unit_price,
    normalize_weight,
)
from po_ingest.services.po_errors import PersistenceFailure
from po_ingest.services.po_types import (
    PersistedOrder,
    PurchaseOrderHeader,
    RawLineItem,
    ResolvedReferences,
)
from po_ingest.services.reference_resolver import resolve_product

log = logging.getLogger("poingest.persistence")

# 头表按数值行号读回
SQL_READ_HEADER = """
    SELECT po.*, c.name AS supplier_name, v.name AS vendor_name
      FROM psi_purchase_orders po
      LEFT JOIN crm_classes c ON po.client_id = CAST(c.id AS VARCHAR(100))
      LEFT JOIN crm_vendors v ON po.vendor_id = CAST(v.id AS VARCHAR(100))
     WHERE po.id = :row_id
"""

# 行表按外部单号读回（行表只认 unique_order_id）
SQL_READ_ITEMS = """
    SELECT poli.*, p."desc" AS product_name
      FROM psi_purchase_order_items poli
      LEFT JOIN psi_products p ON poli.product_id = p.product_id
     WHERE poli.purchase_order_id = :order_ref
     ORDER BY poli.id
"""


def _currency_code(v: Any) -> Optional[str]:
    # 抽取形态默认 ""，保留空串
    if isinstance(v, str):
        return v.strip()
    return normalize_text(v)


def build_header_row(header: PurchaseOrderHeader, refs: ResolvedReferences) -> PsiPurchaseOrder:
    """
    头表行：
    - client_id 用供应商解析结果（查不到则为原始名称）；
    - vendor_id / location_group / location / destination 一律写原值。
    """
    supplier = refs.supplier_value()
    return PsiPurchaseOrder(
        unique_order_id=normalize_text(header.unique_order_id),
        client_id=normalize_text(supplier),
        vendor_id=normalize_text(header.vendor_id),
        destination=normalize_text(header.destination),
        location_group=normalize_text(header.location_group),
        location=normalize_text(header.location),
        po_date=normalize_date(header.order_date, field="order_date"),
        due_date=normalize_date(header.estimated_delivery_date, field="estimated_delivery_date"),
        currency_code=_currency_code(header.currency_code),
        currency_conversion_rate=normalize_rate(header.currency_conversion_rate),
        supplier_reference=normalize_text(header.supplier_reference),
        customer_so=normalize_text(header.customer_so),
        assignee=normalize_text(header.assignee),
        payment_terms=normalize_text(header.payment_terms),
        shipping_terms=normalize_text(header.shipping_terms),
        carrier_id=normalize_text(header.carrier_id),
        carrier_mode_id=normalize_text(header.carrier_mode_id),
        fob=normalize_text(header.fob),
        special_instruction=normalize_text(header.special_instruction),
        sailing_date=normalize_date(header.sailing_date, field="sailing_date"),
        origin_ship_date=normalize_date(header.origin_ship_date, field="origin_ship_date"),
        load_id=normalize_text(header.load_id),
    )


def build_item_row(order_ref: str, item: RawLineItem) -> PsiPurchaseOrderItem:
    return PsiPurchaseOrderItem(
        purchase_order_id=order_ref,
        product_id=normalize_text(item.product_id),
        quantity=normalize_quantity(item.quantity),
        unit=normalize_unit(item.unit, item.size),
        unit_price=normalize_unit_price(item.unit_price),
        foreign_unit_price=normalize_optional_price(item.foreign_unit_price),
        vintage=normalize_text(item.vintage),
        upc=normalize_text(item.upc),
        weight=normalize_weight(item.weight),
    )


class OrderPersistenceEngine:
    """
    一次写入 = 一个连接 + 一个事务：
      1) 插头表，取回数值行号；
      2) 逐行：查商品（仅展示用，出错降级不中断）→ 归一 → 插行（按 unique_order_id 关联）；
      3) 任一步失败整体回滚，对外只抛一个 PersistenceFailure；
      4) 成功后在同一事务内读回头 + 行。
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def persist(
        self,
        header: PurchaseOrderHeader,
        line_items: Sequence[RawLineItem],
        refs: ResolvedReferences,
    ) -> PersistedOrder:
        try:
            async with UnitOfWork(self.db.session_maker) as uow:
                return await self._write(uow.session, header, line_items, refs)
        except SQLAlchemyError as e:
            log.error(
                "Purchase order %r write failed, transaction rolled back: %s",
                header.unique_order_id,
                e,
            )
            raise PersistenceFailure(str(getattr(e, "orig", None) or e)) from e

    async def _write(
        self,
        session: AsyncSession,
        header: PurchaseOrderHeader,
        line_items: Sequence[RawLineItem],
        refs: ResolvedReferences,
    ) -> PersistedOrder:
        po = build_header_row(header, refs)
        session.add(po)
        await session.flush()

        row_id = po.id
        order_ref = po.unique_order_id
        log.info("Inserted purchase order %r (row id %s)", order_ref, row_id)

        for idx, item in enumerate(line_items, start=1):
            product = await resolve_product(session, item.product_id)

            row = build_item_row(order_ref, item)
            log.info(
                "Inserting line item #%d: %s, quantity: %s (product lookup: %s)",
                idx,
                row.product_id,
                row.quantity,
                product.kind if product is not None else "skipped",
            )
            session.add(row)
            await session.flush()

        po_line_items_total.inc(len(line_items))
        return await read_back(session, row_id=row_id, order_ref=order_ref)


async def read_back(session: AsyncSession, *, row_id: int, order_ref: str) -> PersistedOrder:
    order_rows = (await session.execute(text(SQL_READ_HEADER), {"row_id": row_id})).mappings().all()
    item_rows = (await session.execute(text(SQL_READ_ITEMS), {"order_ref": order_ref})).mappings().all()

    order: Optional[Dict[str, Any]] = dict(order_rows[0]) if order_rows else None
    items: List[Dict[str, Any]] = [dict(r) for r in item_rows]
    return PersistedOrder(order=order, items=items, row_id=row_id)

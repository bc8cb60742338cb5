# po_ingest/services/reference_resolver.py
"""
引用解析（best-effort）：

上游数据多为 OCR 抽取，名称不精确。这里只负责“能补全就补全”：
- 查到 → Resolved(id)
- 查不到 → NotFoundUseRaw(原值)
- 查询本身出错 → LookupFailedUseRaw(原值)
三者都不会中断请求；后两者记 warning + 计数，便于区分“数据缺失”与“库出错”。

事务前的查询（供应商 / 厂商 / 库位组 / 库位 / 目的地）各自从连接池取一个 session，
与随后的写事务不保证一致（参考数据极少变更，可接受）。
商品查询在写事务内进行，使用事务的 session，并包在 SAVEPOINT 中。
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from po_ingest.db.session import Database
from po_ingest.obs.metrics import po_reference_lookups_total
from po_ingest.services.field_normalizer import is_blank
from po_ingest.services.po_types import (
    LookupFailedUseRaw,
    NotFoundUseRaw,
    PurchaseOrderHeader,
    Resolved,
    ResolutionOutcome,
    ResolvedReferences,
)

log = logging.getLogger("poingest.resolver")

SQL_SUPPLIER = """
    SELECT id, name
      FROM crm_classes
     WHERE LOWER(name) LIKE LOWER(:pat)
     ORDER BY name ASC
"""

SQL_VENDOR = """
    SELECT id, name
      FROM crm_vendors
     WHERE CAST(id AS VARCHAR(100)) = :vid
"""

SQL_LOCATION_GROUP = """
    SELECT DISTINCT TRIM(name) AS name, TRIM(name) AS id, id AS uid
      FROM psi_location_groups
     WHERE LOWER(name) LIKE LOWER(:pat)
     ORDER BY name ASC
"""

SQL_LOCATION = """
    SELECT location AS id, location AS name
      FROM psi_locations
     WHERE LOWER(location_group) LIKE LOWER(:grp)
       AND is_active = 1
       AND LOWER(location) LIKE LOWER(:loc)
     ORDER BY location
"""

SQL_DESTINATION = """
    SELECT id, name
      FROM st_destinations
     WHERE LOWER(name) LIKE LOWER(:pat)
     ORDER BY sort_order
"""

SQL_PRODUCT = """
    SELECT product_id AS id,
           "desc" AS "desc",
           price,
           uom,
           product_id AS value
      FROM psi_products
     WHERE product_id = :pid
"""


def _contains(v: Any) -> str:
    return f"%{'' if v is None else str(v).strip()}%"


def _record(outcome: ResolutionOutcome) -> ResolutionOutcome:
    po_reference_lookups_total.labels(outcome.field, outcome.kind).inc()
    return outcome


def product_display_name(row: Optional[Dict[str, Any]]) -> Optional[str]:
    """商品展示名："<desc> - (<product_id>)"；无描述时只给编码。"""
    if not row:
        return None
    desc = row.get("desc")
    pid = row.get("id")
    if is_blank(desc):
        return str(pid) if pid is not None else None
    return f"{desc} - ({pid})"


class ReferenceResolver:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def _fetch(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self.db.session() as session:
            res = await session.execute(text(sql), params)
            return [dict(r) for r in res.mappings().all()]

    async def _lookup(
        self,
        *,
        field: str,
        raw: Any,
        table: str,
        sql: str,
        params: Dict[str, Any],
        pick: Callable[[Dict[str, Any]], Any],
    ) -> ResolutionOutcome:
        try:
            rows = await self._fetch(sql, params)
        except SQLAlchemyError as e:
            log.warning("Could not verify %s %r in %s: %s", field, raw, table, e)
            return _record(LookupFailedUseRaw(field=field, raw=raw, error=str(e)))

        if not rows:
            log.warning("%s %r not found in %s, continuing with raw value", field, raw, table)
            return _record(NotFoundUseRaw(field=field, raw=raw))

        row = rows[0]
        log.info("%s %r resolved in %s: %s", field, raw, table, row)
        return _record(Resolved(field=field, id=pick(row), row=row))

    # ------------------------------------------------------------------
    # 单字段
    # ------------------------------------------------------------------

    async def resolve_supplier(self, client_id: Any) -> ResolutionOutcome:
        """供应商：名称子串匹配（不区分大小写），按名称升序取第一条。"""
        return await self._lookup(
            field="supplier",
            raw=client_id,
            table="crm_classes",
            sql=SQL_SUPPLIER,
            params={"pat": _contains(client_id)},
            pick=lambda r: r["id"],
        )

    async def resolve_vendor(self, vendor_id: Any) -> ResolutionOutcome:
        """厂商：按 id 精确匹配；无论结果如何，入库都用原 vendor_id。"""
        return await self._lookup(
            field="vendor",
            raw=vendor_id,
            table="crm_vendors",
            sql=SQL_VENDOR,
            params={"vid": str(vendor_id).strip()},
            pick=lambda r: r["id"],
        )

    async def resolve_location_group(self, location_group: Any) -> ResolutionOutcome:
        return await self._lookup(
            field="location_group",
            raw=location_group,
            table="psi_location_groups",
            sql=SQL_LOCATION_GROUP,
            params={"pat": _contains(location_group)},
            pick=lambda r: r["id"],
        )

    async def resolve_location(self, location: Any, *, location_group: Any) -> ResolutionOutcome:
        """
        库位：按（未解析的）库位组子串 + 启用状态过滤。仅用于观测。

        未提供库位组时组条件为 "%%"，匹配任意组；
        不会把缺失值当成字面量 "null" 去匹配（那样永远查不到）。
        """
        return await self._lookup(
            field="location",
            raw=location,
            table="psi_locations",
            sql=SQL_LOCATION,
            params={"grp": _contains(location_group), "loc": _contains(location)},
            pick=lambda r: r["id"],
        )

    async def resolve_destination(self, destination: Any) -> ResolutionOutcome:
        return await self._lookup(
            field="destination",
            raw=destination,
            table="st_destinations",
            sql=SQL_DESTINATION,
            params={"pat": _contains(destination)},
            pick=lambda r: r["id"],
        )

    # ------------------------------------------------------------------
    # 头表整体
    # ------------------------------------------------------------------

    async def resolve_header(self, header: PurchaseOrderHeader) -> ResolvedReferences:
        refs = ResolvedReferences()

        if is_blank(header.client_id):
            log.warning("Supplier Name (client_id) is missing")
        else:
            refs.supplier = await self.resolve_supplier(header.client_id)

        if not is_blank(header.vendor_id):
            refs.vendor = await self.resolve_vendor(header.vendor_id)

        if not is_blank(header.location_group):
            refs.location_group = await self.resolve_location_group(header.location_group)

        if not is_blank(header.location):
            refs.location = await self.resolve_location(
                header.location, location_group=header.location_group
            )

        if not is_blank(header.destination):
            refs.destination = await self.resolve_destination(header.destination)

        return refs


async def resolve_product(session: AsyncSession, product_id: Any) -> Optional[ResolutionOutcome]:
    """
    事务内的商品查询（仅用于展示名与观测，不影响插入的字段值）。

    查询放在 SAVEPOINT 里：出错只回滚到保存点，外层写事务继续可用，
    结果降级为 LookupFailedUseRaw，与事务前的其它查询一致。
    """
    if is_blank(product_id):
        return None

    try:
        async with session.begin_nested():
            res = await session.execute(text(SQL_PRODUCT), {"pid": str(product_id)})
            rows = [dict(r) for r in res.mappings().all()]
    except SQLAlchemyError as e:
        log.warning("Could not verify product %r in psi_products: %s", product_id, e)
        return _record(LookupFailedUseRaw(field="product", raw=product_id, error=str(e)))

    log.info("Product Lookup Result: %s -> %s", product_id, rows)

    if not rows:
        return _record(NotFoundUseRaw(field="product", raw=product_id))
    row = rows[0]
    row["name"] = product_display_name(row)
    return _record(Resolved(field="product", id=row["id"], row=row))

# po_ingest/services/po_shape_adapter.py
"""
入参形态适配：

- 规范形态（canonical）：请求体本身就是 {unique_order_id, client_id, ..., line_items:[...]}；
- 抽取形态（extraction）：请求体带 extracted_json，内部按 page_1..page_N 分页，
  每页 priority_fields 下有头字段与 line_items。

两种形态在这里统一成 PurchaseOrderHeader + [RawLineItem]，下游只认规范形态。
"""

from __future__ import annotations

import logging
import re
from dataclasses import fields
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Tuple

from po_ingest.services.field_normalizer import (
    normalize_quantity,
    normalize_text,
    unwrap_value,
)
from po_ingest.services.po_errors import MalformedInput
from po_ingest.services.po_types import (
    AdaptedOrder,
    CanonicalOrder,
    ExtractionBundle,
    IncomingPayload,
    PurchaseOrderHeader,
    RawLineItem,
)

log = logging.getLogger("poingest.adapter")

_PAGE_KEY_RE = re.compile(r"^page_(\d+)$")
_PRIMARY_PAGE = "page_1"

_HEADER_FIELDS = tuple(f.name for f in fields(PurchaseOrderHeader))


def detect_shape(body: Any) -> IncomingPayload:
    if not isinstance(body, dict):
        raise MalformedInput("Invalid request body: expected a JSON object")

    extracted = body.get("extracted_json")
    if extracted:
        if not isinstance(extracted, dict):
            raise MalformedInput("Invalid extracted_json format: expected an object")
        return ExtractionBundle(extracted_json=extracted)
    return CanonicalOrder(body=body)


def adapt(body: Any) -> AdaptedOrder:
    payload = detect_shape(body)
    if isinstance(payload, ExtractionBundle):
        return adapt_extraction(payload.extracted_json)
    return adapt_canonical(payload.body)


# ---------------------------------------------------------------------------
# canonical
# ---------------------------------------------------------------------------


def _line_from_canonical(item: Mapping[str, Any]) -> RawLineItem:
    return RawLineItem(
        product_id=normalize_text(unwrap_value(item.get("product_id"))),
        quantity=unwrap_value(item.get("quantity")),
        unit=unwrap_value(item.get("unit")),
        size=unwrap_value(item.get("size")),
        unit_price=unwrap_value(item.get("unit_price")),
        foreign_unit_price=unwrap_value(item.get("foreign_unit_price")),
        vintage=unwrap_value(item.get("vintage")),
        upc=unwrap_value(item.get("upc")),
        weight=unwrap_value(item.get("weight")),
    )


def _collect_lines(
    raw_items: Any,
    *,
    where: str,
    to_line: Callable[[Mapping[str, Any]], RawLineItem],
) -> List[RawLineItem]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        log.warning("%s.line_items is not a list (%s), treated as empty", where, type(raw_items).__name__)
        return []

    out: List[RawLineItem] = []
    for idx, item in enumerate(raw_items):
        if not isinstance(item, dict):
            raise MalformedInput(f"Invalid line_items[{idx}] in {where}: expected an object")
        out.append(to_line(item))
    return out


def adapt_canonical(body: Dict[str, Any]) -> AdaptedOrder:
    header = PurchaseOrderHeader(**{k: body[k] for k in _HEADER_FIELDS if k in body})
    if header.currency_conversion_rate is None:
        header.currency_conversion_rate = Decimal("1.0")
    lines = _collect_lines(body.get("line_items"), where="body", to_line=_line_from_canonical)
    return AdaptedOrder(header=header, line_items=lines, source="canonical")


# ---------------------------------------------------------------------------
# extraction（多页 OCR 抽取）
# ---------------------------------------------------------------------------


def _dig(d: Any, *path: str) -> Any:
    """按路径取值并去掉 {value} 包装；中途缺失 → None。"""
    cur = d
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return unwrap_value(cur)


def page_keys(extracted: Mapping[str, Any]) -> List[str]:
    """page_N 键按 N 升序（page_2 在 page_10 之前）。"""
    found: List[Tuple[int, str]] = []
    for k in extracted.keys():
        m = _PAGE_KEY_RE.match(str(k))
        if m:
            found.append((int(m.group(1)), k))
    return [k for _, k in sorted(found)]


def _line_from_extraction(item: Mapping[str, Any]) -> RawLineItem:
    # pack_quantity 取整数部分（"12 cases" → 12）
    qty = int(normalize_quantity(_dig(item, "pack_quantity")))
    return RawLineItem(
        product_id=normalize_text(_dig(item, "item_number")),
        quantity=Decimal(qty),
        unit=_dig(item, "case_quantity"),
        unit_price=_dig(item, "unit_price"),
        weight=_dig(item, "weight"),
    )


def adapt_extraction(extracted: Dict[str, Any]) -> AdaptedOrder:
    log.info("Processing extracted JSON format request with multiple pages")

    keys = page_keys(extracted)
    if not keys:
        raise MalformedInput("Invalid extracted_json format: no pages found")

    log.info("Found %d pages in extracted JSON", len(keys))

    primary = extracted.get(_PRIMARY_PAGE)
    if not isinstance(primary, dict):
        raise MalformedInput("Invalid extracted_json format: missing page_1")

    pf = primary.get("priority_fields")
    if not isinstance(pf, dict):
        pf = {}

    header = PurchaseOrderHeader(
        unique_order_id=normalize_text(_dig(pf, "po_number")),
        client_id=normalize_text(_dig(pf, "customer_details", "buyer_info")),
        vendor_id=normalize_text(_dig(pf, "vendor_details", "vendor_id")),
        destination=normalize_text(_dig(pf, "shipping_details", "ship_to")),
        order_date=_dig(pf, "po_date"),
        estimated_delivery_date=_dig(pf, "due_date"),
        currency_code="",
        currency_conversion_rate=Decimal("1.0"),
        special_instruction=normalize_text(_dig(pf, "shipping_details", "shipping_instruction")),
        origin_ship_date=_dig(pf, "shipping_details", "ship_date"),
    )

    lines: List[RawLineItem] = []
    for key in keys:
        page = extracted.get(key)
        page_items = _dig(page, "priority_fields", "line_items") if isinstance(page, dict) else None
        if isinstance(page_items, list):
            lines.extend(_collect_lines(page_items, where=key, to_line=_line_from_extraction))

    log.info("Processed %d line items from all pages", len(lines))
    return AdaptedOrder(header=header, line_items=lines, source="extraction")

# po_ingest/services/po_types.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

# ---------------------------------------------------------------------------
# 头 / 行（归一后的规范形态，内部只流转裸值）
# ---------------------------------------------------------------------------


@dataclass
class PurchaseOrderHeader:
    unique_order_id: Optional[str] = None
    client_id: Optional[str] = None
    vendor_id: Optional[str] = None
    destination: Optional[str] = None
    location_group: Optional[str] = None
    location: Optional[str] = None
    order_date: Any = None
    estimated_delivery_date: Any = None
    currency_code: Optional[str] = None
    currency_conversion_rate: Any = Decimal("1.0")
    supplier_reference: Optional[str] = None
    customer_so: Optional[str] = None
    assignee: Optional[str] = None
    payment_terms: Optional[str] = None
    shipping_terms: Optional[str] = None
    carrier_id: Optional[str] = None
    carrier_mode_id: Optional[str] = None
    fob: Optional[str] = None
    special_instruction: Optional[str] = None
    sailing_date: Any = None
    origin_ship_date: Any = None
    load_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RawLineItem:
    """
    行项目的边界形态：每个字段 None 表示“缺失”，与 0 区分；
    数值仍是原始值（如 "$12.50"），由持久化阶段统一归一。
    """

    product_id: Optional[str] = None
    quantity: Any = None
    unit: Any = None
    size: Any = None
    unit_price: Any = None
    foreign_unit_price: Any = None
    vintage: Any = None
    upc: Any = None
    weight: Any = None


# ---------------------------------------------------------------------------
# 两种入参形态（边界上只判定一次）
# ---------------------------------------------------------------------------


@dataclass
class CanonicalOrder:
    body: Dict[str, Any]
    kind: str = "canonical"


@dataclass
class ExtractionBundle:
    extracted_json: Dict[str, Any]
    kind: str = "extraction"


IncomingPayload = Union[CanonicalOrder, ExtractionBundle]


@dataclass
class AdaptedOrder:
    header: PurchaseOrderHeader
    line_items: List[RawLineItem]
    source: str


# ---------------------------------------------------------------------------
# 引用解析结果
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Resolved:
    field: str
    id: Any
    row: Optional[Dict[str, Any]] = None
    kind: str = "resolved"

    @property
    def value(self) -> Any:
        return self.id


@dataclass(frozen=True)
class NotFoundUseRaw:
    field: str
    raw: Any
    kind: str = "not_found"

    @property
    def value(self) -> Any:
        return self.raw


@dataclass(frozen=True)
class LookupFailedUseRaw:
    field: str
    raw: Any
    error: str = ""
    kind: str = "lookup_failed"

    @property
    def value(self) -> Any:
        return self.raw


ResolutionOutcome = Union[Resolved, NotFoundUseRaw, LookupFailedUseRaw]

# 降级（查不到 / 查询出错）：调用方不报错，只用原始值
DEGRADED = (NotFoundUseRaw, LookupFailedUseRaw)


@dataclass
class ResolvedReferences:
    """
    头表各引用字段的解析结果；未提供的字段为 None（不查询）。

    入库时只有 supplier 会替换成解析值；vendor 始终写原值；
    location_group / location / destination 仅用于观测，不回写头表。
    """

    supplier: Optional[ResolutionOutcome] = None
    vendor: Optional[ResolutionOutcome] = None
    location_group: Optional[ResolutionOutcome] = None
    location: Optional[ResolutionOutcome] = None
    destination: Optional[ResolutionOutcome] = None

    def supplier_value(self) -> Any:
        return self.supplier.value if self.supplier is not None else None

    def summary(self) -> Dict[str, Optional[str]]:
        return {
            "supplier": self.supplier.kind if self.supplier else None,
            "vendor": self.vendor.kind if self.vendor else None,
            "location_group": self.location_group.kind if self.location_group else None,
            "location": self.location.kind if self.location else None,
            "destination": self.destination.kind if self.destination else None,
        }


@dataclass
class PersistedOrder:
    order: Optional[Dict[str, Any]]
    items: List[Dict[str, Any]] = field(default_factory=list)
    row_id: Optional[int] = None

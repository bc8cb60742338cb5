# po_ingest/schemas/purchase_order.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """
    统一响应外壳：
    - 成功：{success: true, message, data}
    - 失败：{success: false, message, error}
    """

    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PurchaseOrderCreatedData(BaseModel):
    order: Optional[Dict[str, Any]] = Field(None, description="头表（含 supplier_name / vendor_name）")
    items: List[Dict[str, Any]] = Field(default_factory=list, description="行表（含 product_name）")
    resolution: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="各引用字段的解析结果：resolved / not_found / lookup_failed / null(未提供)",
    )


class ColumnInfo(BaseModel):
    name: str
    type: str
    nullable: str
    key: str


class TableInfo(BaseModel):
    columns: List[ColumnInfo]
    row_count: int = Field(..., alias="rowCount")

    model_config = ConfigDict(populate_by_name=True)


class DbInfoData(BaseModel):
    database: str
    tables: List[str]
    schema_: Dict[str, TableInfo] = Field(..., alias="schema")

    model_config = ConfigDict(populate_by_name=True)

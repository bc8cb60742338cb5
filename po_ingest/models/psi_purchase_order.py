# po_ingest/models/psi_purchase_order.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from po_ingest.db.base import Base

if TYPE_CHECKING:
    from po_ingest.models.psi_purchase_order_item import PsiPurchaseOrderItem


class PsiPurchaseOrder(Base):
    """
    采购单头表

    说明：
    - unique_order_id 是外部单号（自然键），行表通过它关联头表；
    - id 为存储分配的数值行号，flush 时取回，读回头表时使用；
    - client_id 存供应商解析结果（crm_classes.id），解析不到时存原始名称。
    """

    __tablename__ = "psi_purchase_orders"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    unique_order_id: Mapped[str] = mapped_column(sa.String(100), nullable=False, unique=True)

    client_id: Mapped[Optional[str]] = mapped_column(sa.String(100), comment="Supplier Name")
    vendor_id: Mapped[Optional[str]] = mapped_column(sa.String(100), comment="Vendor Name")
    destination: Mapped[Optional[str]] = mapped_column(sa.String(255))
    location_group: Mapped[Optional[str]] = mapped_column(sa.String(100))
    location: Mapped[Optional[str]] = mapped_column(sa.String(100))

    po_date: Mapped[Optional[date]] = mapped_column(sa.Date, comment="Order Date")
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date, comment="Estimated Delivery Date")

    currency_code: Mapped[Optional[str]] = mapped_column(sa.String(3))
    currency_conversion_rate: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 6))

    supplier_reference: Mapped[Optional[str]] = mapped_column(sa.String(100))
    customer_so: Mapped[Optional[str]] = mapped_column(sa.String(100))
    assignee: Mapped[Optional[str]] = mapped_column(sa.String(100))
    payment_terms: Mapped[Optional[str]] = mapped_column(sa.String(100))
    shipping_terms: Mapped[Optional[str]] = mapped_column(sa.String(100))
    carrier_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    carrier_mode_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    fob: Mapped[Optional[str]] = mapped_column(sa.String(100))
    special_instruction: Mapped[Optional[str]] = mapped_column(sa.Text)
    sailing_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    origin_ship_date: Mapped[Optional[date]] = mapped_column(sa.Date, comment="Origin Ship Date")
    load_id: Mapped[Optional[str]] = mapped_column(sa.String(100))

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # 级联删除由数据库外键保证（ON DELETE CASCADE）
    items: Mapped[List["PsiPurchaseOrderItem"]] = relationship(
        "PsiPurchaseOrderItem",
        back_populates="order",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<PsiPO id={self.id} unique_order_id={self.unique_order_id!r} client_id={self.client_id!r}>"

# po_ingest/models/psi_purchase_order_item.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from po_ingest.db.base import Base

if TYPE_CHECKING:
    from po_ingest.models.psi_purchase_order import PsiPurchaseOrder


class PsiPurchaseOrderItem(Base):
    """
    采购单行表：purchase_order_id 引用头表的 unique_order_id（外部单号），不是头表数值 id。
    """

    __tablename__ = "psi_purchase_order_items"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    purchase_order_id: Mapped[str] = mapped_column(
        sa.String(100),
        sa.ForeignKey("psi_purchase_orders.unique_order_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[Optional[str]] = mapped_column(sa.String(100))
    quantity: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 3))
    unit: Mapped[Optional[str]] = mapped_column(sa.String(50))
    unit_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))
    foreign_unit_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))
    vintage: Mapped[Optional[str]] = mapped_column(sa.String(50))
    upc: Mapped[Optional[str]] = mapped_column(sa.String(100))
    weight: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))

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

    order: Mapped["PsiPurchaseOrder"] = relationship("PsiPurchaseOrder", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<PsiPOItem id={self.id} po={self.purchase_order_id!r} "
            f"product={self.product_id!r} qty={self.quantity}>"
        )

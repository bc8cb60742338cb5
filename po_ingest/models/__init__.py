from po_ingest.models.psi_purchase_order import PsiPurchaseOrder
from po_ingest.models.psi_purchase_order_item import PsiPurchaseOrderItem

__all__ = ["PsiPurchaseOrder", "PsiPurchaseOrderItem"]

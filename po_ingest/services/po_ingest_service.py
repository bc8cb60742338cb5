# po_ingest/services/po_ingest_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from po_ingest.db.session import Database
from po_ingest.obs.metrics import po_ingest_total
from po_ingest.services.po_errors import MalformedInput, PersistenceFailure
from po_ingest.services.po_persistence import OrderPersistenceEngine
from po_ingest.services.po_shape_adapter import adapt
from po_ingest.services.po_types import PersistedOrder, ResolvedReferences
from po_ingest.services.reference_resolver import ReferenceResolver

log = logging.getLogger("poingest.ingest")


@dataclass
class IngestResult:
    persisted: PersistedOrder
    refs: ResolvedReferences
    source: str

    def to_data(self) -> Dict[str, Any]:
        return {
            "order": self.persisted.order,
            "items": self.persisted.items,
            "resolution": self.refs.summary(),
        }


class PurchaseOrderIngestService:
    """
    采购单写入编排：形态适配 → 引用解析 → 事务落库。

    - MalformedInput：直接抛给上层（400），不做任何写入；
    - 引用解析降级：继续；
    - PersistenceFailure：已回滚，抛给上层（500）。
    """

    def __init__(
        self,
        db: Database,
        *,
        resolver: Optional[ReferenceResolver] = None,
        engine: Optional[OrderPersistenceEngine] = None,
    ) -> None:
        self.db = db
        self.resolver = resolver or ReferenceResolver(db)
        self.engine = engine or OrderPersistenceEngine(db)

    async def ingest(self, body: Any) -> IngestResult:
        try:
            adapted = adapt(body)
        except MalformedInput as e:
            log.warning("Rejected purchase order payload: %s", e.message)
            po_ingest_total.labels("unknown", "malformed").inc()
            raise

        refs = await self.resolver.resolve_header(adapted.header)

        try:
            persisted = await self.engine.persist(adapted.header, adapted.line_items, refs)
        except PersistenceFailure:
            po_ingest_total.labels(adapted.source, "failed").inc()
            raise

        po_ingest_total.labels(adapted.source, "created").inc()
        log.info(
            "Purchase order %r created from %s payload with %d line items (resolution=%s)",
            adapted.header.unique_order_id,
            adapted.source,
            len(persisted.items),
            refs.summary(),
        )
        return IngestResult(persisted=persisted, refs=refs, source=adapted.source)

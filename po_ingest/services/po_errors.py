# po_ingest/services/po_errors.py
from __future__ import annotations

from typing import Optional


class PoIngestError(Exception):
    """
    业务异常基类：message 面向调用方，error 为底层原因（可选，用于诊断）。
    """

    code = "PO_INGEST_ERROR"
    status = 500

    def __init__(self, message: str, *, error: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error = error


class MalformedInput(PoIngestError):
    """入参结构缺失（extracted_json 无分页 / 缺 page_1 等），不触发任何写入。"""

    code = "MALFORMED_INPUT"
    status = 400


class PersistenceFailure(PoIngestError):
    """事务写入失败，已整体回滚。"""

    code = "PERSISTENCE_FAILURE"
    status = 500

    def __init__(self, error: str, *, message: str = "Failed to create purchase order") -> None:
        super().__init__(message, error=error)


class DiagnosticQueryFailure(PoIngestError):
    code = "DIAGNOSTIC_QUERY_FAILURE"
    status = 500

    def __init__(self, error: str, *, message: str = "Failed to get database info") -> None:
        super().__init__(message, error=error)

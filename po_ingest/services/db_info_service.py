# po_ingest/services/db_info_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Set

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import CompileError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from po_ingest.db.session import Database
from po_ingest.services.po_errors import DiagnosticQueryFailure

log = logging.getLogger("poingest.dbinfo")


def _type_name(t: Any) -> str:
    try:
        return str(t)
    except CompileError:
        return type(t).__name__


def _describe_columns(sync_conn: Connection, table: str) -> List[Dict[str, Any]]:
    """
    列信息：name / type / nullable(YES|NO) / key(PRI|UNI|MUL|"")。
    key 的含义与 information_schema.COLUMN_KEY 一致。
    """
    insp = inspect(sync_conn)

    pk: Set[str] = set(insp.get_pk_constraint(table).get("constrained_columns") or [])

    uni: Set[str] = set()
    for uc in insp.get_unique_constraints(table):
        cols = uc.get("column_names") or []
        if len(cols) == 1:
            uni.add(cols[0])

    mul: Set[str] = set()
    for ix in insp.get_indexes(table):
        cols = [c for c in (ix.get("column_names") or []) if c]
        if not cols:
            continue
        if ix.get("unique") and len(cols) == 1:
            uni.add(cols[0])
        else:
            mul.add(cols[0])
    for fk in insp.get_foreign_keys(table):
        for c in fk.get("constrained_columns") or []:
            mul.add(c)

    out: List[Dict[str, Any]] = []
    for col in insp.get_columns(table):
        name = col["name"]
        if name in pk:
            key = "PRI"
        elif name in uni:
            key = "UNI"
        elif name in mul:
            key = "MUL"
        else:
            key = ""
        out.append(
            {
                "name": name,
                "type": _type_name(col["type"]),
                "nullable": "YES" if col.get("nullable", True) else "NO",
                "key": key,
            }
        )
    return out


class DbInfoService:
    """只读诊断：表清单 + 列元数据 + 行数（带上限，避免全表扫描）。"""

    def __init__(self, db: Database, *, row_count_cap: int = 10000) -> None:
        self.db = db
        self.row_count_cap = int(row_count_cap)

    async def _count_rows(self, conn: AsyncConnection, table: str) -> int:
        quoted = conn.dialect.identifier_preparer.quote(table)
        sql = text(f"SELECT COUNT(*) AS count FROM (SELECT 1 FROM {quoted} LIMIT :cap) AS capped")
        return int((await conn.execute(sql, {"cap": self.row_count_cap})).scalar_one())

    async def describe(self) -> Dict[str, Any]:
        try:
            async with self.db.engine.connect() as conn:
                tables: List[str] = await conn.run_sync(lambda c: inspect(c).get_table_names())
                schema: Dict[str, Any] = {}
                for table in tables:
                    columns = await conn.run_sync(_describe_columns, table)
                    schema[table] = {
                        "columns": columns,
                        "rowCount": await self._count_rows(conn, table),
                    }
        except SQLAlchemyError as e:
            log.error("Error getting database info: %s", e)
            raise DiagnosticQueryFailure(str(e)) from e

        return {"database": self.db.name, "tables": tables, "schema": schema}

# tests/conftest.py
from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator

import httpx
import pytest_asyncio
from sqlalchemy import text

from po_ingest.db.base import init_schema
from po_ingest.db.session import Database
from po_ingest.main import create_app

# ==========================
# 既有库中的参考表（本服务只读）
# ==========================
REFERENCE_DDL = [
    """
    CREATE TABLE crm_classes (
        id INTEGER PRIMARY KEY,
        name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE crm_vendors (
        id INTEGER PRIMARY KEY,
        name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE psi_location_groups (
        id INTEGER PRIMARY KEY,
        name VARCHAR(100) NOT NULL
    )
    """,
    """
    CREATE TABLE psi_locations (
        id INTEGER PRIMARY KEY,
        location VARCHAR(100) NOT NULL,
        location_group VARCHAR(100),
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE st_destinations (
        id INTEGER PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE psi_products (
        product_id VARCHAR(100) PRIMARY KEY,
        "desc" VARCHAR(255),
        price NUMERIC(10, 2),
        uom VARCHAR(50)
    )
    """,
]

REFERENCE_SEED = [
    "INSERT INTO crm_classes (id, name) VALUES (1, 'Acme Corporation'), (2, 'Acme Beverages'), (3, 'Globex')",
    "INSERT INTO crm_vendors (id, name) VALUES (10, 'Northwind Imports'), (11, 'Contoso Wines')",
    "INSERT INTO psi_location_groups (id, name) VALUES (1, '  East Coast  '), (2, 'West Coast')",
    """
    INSERT INTO psi_locations (id, location, location_group, is_active)
    VALUES (1, 'NJ-02', 'East Coast', 0),
           (2, 'NJ-01', 'East Coast', 1),
           (3, 'CA-01', 'West Coast', 1)
    """,
    "INSERT INTO st_destinations (id, name, sort_order) VALUES (1, 'Newark Warehouse', 2), (2, 'Newark Port', 1)",
    """
    INSERT INTO psi_products (product_id, "desc", price, uom)
    VALUES ('P1', 'Cabernet 750ml', 10.00, 'EACH'),
           ('P2', 'Merlot 750ml', 12.50, 'CASE'),
           ('P3', 'Rose 750ml', 9.00, 'EACH')
    """,
]


async def _make_db(path: Path, *, with_reference: bool) -> Database:
    database = Database(f"sqlite:///{path}", name="psi_test_db")
    await init_schema(database.engine)
    if with_reference:
        async with database.engine.begin() as conn:
            for ddl in REFERENCE_DDL:
                await conn.execute(text(ddl))
            for sql in REFERENCE_SEED:
                await conn.execute(text(sql))
    return database


@pytest_asyncio.fixture(scope="function")
async def db(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """每用例独立 SQLite 文件库：自有两表 + 参考表种子。"""
    database = await _make_db(tmp_path / "po.db", with_reference=True)
    try:
        yield database
    finally:
        await database.close()


@pytest_asyncio.fixture(scope="function")
async def bare_db(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """只有自有两表、没有参考表：所有参考查询都会出错。"""
    database = await _make_db(tmp_path / "bare.db", with_reference=False)
    try:
        yield database
    finally:
        await database.close()


@pytest_asyncio.fixture(scope="function")
async def client(db: Database) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(db=db)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as cli:
        yield cli

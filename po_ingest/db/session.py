# po_ingest/db/session.py
# 存储能力：Engine + AsyncSession 工厂，生命周期显式（进程启动 open，关闭时 close）
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

log = logging.getLogger("poingest.db")


# ---- DSN 归一：统一到 psycopg3 与 aiosqlite ----
def normalize_async_dsn(url: str) -> str:
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql://..."'，剥掉两侧引号
    if len(url) >= 2 and url[0] == url[-1] and url[0] in ("'", '"'):
        url = url[1:-1].strip()
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite:///") - 1 :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _enable_sqlite_fk(engine: AsyncEngine) -> None:
    # SQLite 默认不校验外键，ON DELETE CASCADE 依赖它
    @event.listens_for(engine.sync_engine, "connect")
    def _fk_on(dbapi_conn, _record):  # pragma: no cover - 驱动回调
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def create_engine_for(
    url_str: str,
    *,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 0,
    pool_timeout: float = 30.0,
) -> AsyncEngine:
    url_str = normalize_async_dsn(url_str)
    backend = make_url(url_str).get_backend_name()

    kwargs: Dict[str, Any] = {"echo": echo}
    if backend.startswith("postgresql"):
        kwargs.update(
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
        )

    engine = create_async_engine(url_str, **kwargs)
    if backend.startswith("sqlite"):
        _enable_sqlite_fk(engine)
    return engine


class Database:
    """
    连接池 + 会话工厂。

    由 FastAPI lifespan 创建并挂到 app.state.db，按引用传入各组件；
    不使用模块级全局 engine。
    """

    def __init__(
        self,
        url: str,
        *,
        name: Optional[str] = None,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 0,
        pool_timeout: float = 30.0,
    ) -> None:
        self.url = normalize_async_dsn(url)
        self.name = name or (make_url(self.url).database or "")
        self.engine: AsyncEngine = create_engine_for(
            self.url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
        )
        self.session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            name=settings.DB_NAME,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )

    @property
    def backend(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        return self.session_maker()

    async def close(self) -> None:
        await self.engine.dispose()
        log.info("database engine disposed")

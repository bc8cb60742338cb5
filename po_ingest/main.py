# po_ingest/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from po_ingest.api.errors import register_exception_handlers
from po_ingest.api.routers.db_info import router as db_info_router
from po_ingest.api.routers.purchase_orders import router as purchase_orders_router
from po_ingest.core.config import AppSettings, get_settings
from po_ingest.core.logging import setup_logging
from po_ingest.db.base import init_schema
from po_ingest.db.session import Database
from po_ingest.obs.metrics import PrometheusMiddleware
from po_ingest.obs.metrics import router as metrics_router

logger = logging.getLogger("poingest")


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    db: Optional[Database] = None,
) -> FastAPI:
    """
    db 为空时由 lifespan 按配置创建并在关闭时释放；
    测试可直接注入已就绪的 Database（此时不建表、不释放）。
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Optional[Database] = None
        if getattr(app.state, "db", None) is None:
            setup_logging(settings.LOG_LEVEL)
            owned = Database.from_settings(settings)
            if settings.INIT_SCHEMA:
                await init_schema(owned.engine)
            app.state.db = owned
            logger.info(
                "Purchase Order API ready | port=%s env=%s database=%s (%s)",
                settings.PORT,
                settings.ENV,
                owned.name,
                owned.backend,
            )
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()
                app.state.db = None

    app = FastAPI(title="PO-Ingest", version="1.0.0", lifespan=lifespan)
    app.state.db = db

    app.add_middleware(PrometheusMiddleware)
    register_exception_handlers(app)

    app.include_router(purchase_orders_router)
    app.include_router(db_info_router)
    app.include_router(metrics_router)

    @app.get("/")
    async def root():
        return {"message": "Purchase Order API is running"}

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().PORT)

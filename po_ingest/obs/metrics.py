# po_ingest/obs/metrics.py
import logging
import time

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

access_log = logging.getLogger("poingest.access")

http_requests_total = Counter("http_requests_total", "HTTP requests", ["method", "path", "code"])
http_request_duration = Histogram(
    "http_request_duration_seconds", "HTTP request duration seconds", ["method", "path"]
)

# 引用解析：outcome = resolved / not_found / lookup_failed
po_reference_lookups_total = Counter(
    "po_reference_lookups_total", "Reference lookups by outcome", ["field", "outcome"]
)
# 采购单写入：result = created / malformed / failed
po_ingest_total = Counter("po_ingest_total", "Purchase order ingest attempts", ["source", "result"])
po_line_items_total = Counter("po_line_items_total", "Purchase order line items persisted")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """请求计时 + 计数 + 访问日志（METHOD path code ms）。"""

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        http_requests_total.labels(
            request.method, request.url.path, str(response.status_code)
        ).inc()
        http_request_duration.labels(request.method, request.url.path).observe(elapsed)
        access_log.info(
            "%s %s %s %.1f ms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed * 1000,
        )
        return response


router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

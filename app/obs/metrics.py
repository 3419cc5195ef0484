# app/obs/metrics.py
import os
import time

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware


http_requests_total = Counter("http_requests_total", "HTTP requests", ["method", "path", "code"])
http_request_duration = Histogram(
    "http_request_duration_seconds", "HTTP request duration seconds", ["method", "path"]
)

# 下单 / 取消吞吐
orders_placed_total = Counter("storefront_orders_placed_total", "Orders committed")
order_rejections_total = Counter(
    "storefront_order_rejections_total", "Order placement rejections", ["reason"]
)
orders_cancelled_total = Counter(
    "storefront_orders_cancelled_total", "Orders cancelled (stock restored)", ["actor"]
)

# 单号派生：降级到随机尾号 / 唯一冲突重试
order_number_fallback_total = Counter(
    "storefront_order_number_fallback_total", "Order number derived from random fallback"
)
order_number_retry_total = Counter(
    "storefront_order_number_retry_total", "Order number re-derived after uniqueness violation"
)


def _route_label(request) -> str:
    # 用路由模板做 label，避免 /orders/123 之类把基数撑爆
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        path = _route_label(request)
        http_requests_total.labels(request.method, path, str(response.status_code)).inc()
        http_request_duration.labels(request.method, path).observe(elapsed)
        return response


router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """
    单进程直接导出默认 REGISTRY；
    多 worker 部署时设置 PROMETHEUS_MULTIPROC_DIR，由 MultiProcessCollector 合并各进程分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

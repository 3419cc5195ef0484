# app/http_problem_handlers.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.envelope import fail
from app.api.errors import BizError

logger = logging.getLogger("storefront.http")


def _new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def _validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    details: List[Dict[str, Any]] = []
    for e in exc.errors():
        if not isinstance(e, dict):
            continue
        loc = e.get("loc") or ()
        details.append(
            {
                "path": ".".join(str(p) for p in loc),
                "reason": str(e.get("msg") or e.get("type") or "invalid"),
            }
        )
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """
    所有失败统一翻译为 {error: true, message, data} 信封：
    - BizError               → 其自带 status
    - RequestValidationError → 400（InvalidInput）
    - HTTPException          → 原 status
    - 其它                    → 500，不外泄存储细节，记录 trace_id
    """

    @app.exception_handler(BizError)
    async def _biz_exc(req: Request, exc: BizError):
        if exc.status >= 500:
            logger.error("BIZ_ERROR %s %s: %s", req.method, req.url.path, exc.message)
        return fail(exc.status, exc.message, exc.data)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details = _validation_details(exc)
        message = "Invalid request"
        if details:
            first = details[0]
            message = f"Invalid request: {first['path']}: {first['reason']}"
        return fail(400, message, {"details": details})

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        msg = exc.detail if isinstance(exc.detail, str) else "Request rejected"
        return fail(int(exc.status_code), msg)

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _new_trace_id()
        logger.exception("UNHANDLED_EXC[%s] %s %s: %s", trace_id, req.method, req.url.path, exc)
        return fail(500, "Internal server error", {"trace_id": trace_id})

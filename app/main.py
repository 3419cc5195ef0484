# app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routers.admin_orders import router as admin_orders_router
from app.api.routers.cart import router as cart_router
from app.api.routers.diag import router as diag_router
from app.api.routers.orders import router as orders_router
from app.core.config import AppSettings, get_settings
from app.core.logging import setup_logging
from app.core.security import check_secret
from app.db.base import init_models
from app.db.session import Database
from app.http_problem_handlers import register_exception_handlers
from app.obs.metrics import PrometheusMiddleware
from app.obs.metrics import router as metrics_router

logger = logging.getLogger("storefront.http")


def create_app(settings: Optional[AppSettings] = None, db: Optional[Database] = None) -> FastAPI:
    """
    应用工厂：
    - settings / db 可注入（测试用独立库）
    - 未注入 db 时按 DATABASE_URL 构造
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    check_secret(settings)
    init_models()

    db = db or Database.from_url(settings.DATABASE_URL, echo=settings.SQL_ECHO)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.AUTO_CREATE_TABLES:
            await db.create_all()
            logger.info("AUTO_CREATE_TABLES done")
        try:
            yield
        finally:
            await db.dispose()

    app = FastAPI(
        title="Storefront",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db

    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(orders_router)
    app.include_router(cart_router)
    app.include_router(admin_orders_router)
    app.include_router(diag_router)
    app.include_router(metrics_router)

    logger.info("APP_READY env=%s routes=%d", settings.ENV, len(app.routes))
    return app


app = create_app()

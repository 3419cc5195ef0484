# app/api/routers/diag.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.envelope import fail, ok

router = APIRouter(tags=["diag"])

logger = logging.getLogger("storefront.http")


@router.get("/health")
async def health(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("HEALTH_DB_DOWN err=%s", e)
        return fail(503, "Database unavailable", {"ok": False, "db": "down"})
    return ok({"ok": True, "db": "up"}, "OK")

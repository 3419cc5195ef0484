# app/api/deps.py
from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import AuthError, ForbiddenError
from app.core.security import Identity, decode_access_token, identity_from_claims
from app.db.session import Database

# ---------------------------
# 库句柄 / Session（请求级）
# ---------------------------


def get_database(request: Request) -> Database:
    """create_app 构造并挂在 app.state.db 上的库句柄。"""
    return request.app.state.db


async def get_session(db: Database = Depends(get_database)) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 依赖：每请求一个 AsyncSession，事务边界由服务层 atomic() 控制。
    """
    async with db.session() as session:
        yield session


# ---------------------------
# 当前身份（严格版）
# ---------------------------

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    """
    - 必须带 Authorization: Bearer <token>
    - token 无效 / 过期 → 401
    """
    token = (credentials.credentials if credentials else "").strip()
    if not token:
        raise AuthError("No token provided")

    claims = decode_access_token(token, settings=request.app.state.settings)
    identity = identity_from_claims(claims) if claims else None
    if identity is None:
        raise AuthError("Invalid or expired token")
    return identity


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise ForbiddenError("Admin access required")
    return identity

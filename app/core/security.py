# app/core/security.py
"""
安全工具（统一入口）：

- PyJWT，仅 HS256，禁止 alg=none
- 非 dev 环境必须显式配置 JWT_SECRET（禁止 dev 默认值）
- 登录 / 发 token 接口不在本服务内，这里只负责解码身份；
  create_access_token 供脚本与测试使用
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from app.core.config import DEV_JWT_SECRETS, AppSettings, get_settings

ROLE_USER = "user"
ROLE_ADMIN = "admin"

_ALLOWED_ALGS = {"HS256"}


@dataclass(frozen=True)
class Identity:
    """身份协作方给出的最小事实：谁、什么角色。"""

    user_id: int
    role: str = ROLE_USER
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def check_secret(settings: AppSettings) -> None:
    """启动即检查：非 dev 环境禁止使用 dev 默认 secret。"""
    if settings.JWT_ALGORITHM not in _ALLOWED_ALGS:
        raise RuntimeError(f"SECURITY ERROR: unsupported JWT_ALGORITHM {settings.JWT_ALGORITHM!r}")
    if not settings.is_dev and settings.JWT_SECRET in DEV_JWT_SECRETS:
        raise RuntimeError(
            "SECURITY ERROR: JWT_SECRET is not properly configured.\n"
            f"ENV = {settings.ENV!r}\n"
            "Set a strong JWT_SECRET via environment variable or .env file."
        )


def create_access_token(
    data: Dict[str, Any],
    expires_minutes: Optional[int] = None,
    *,
    settings: Optional[AppSettings] = None,
) -> str:
    s = settings or get_settings()
    payload = dict(data)
    payload.setdefault("iat", int(time.time()))
    payload["exp"] = int(time.time()) + 60 * (expires_minutes or s.ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(payload, s.JWT_SECRET, algorithm=s.JWT_ALGORITHM)


def decode_access_token(
    token: str,
    *,
    settings: Optional[AppSettings] = None,
) -> Optional[Dict[str, Any]]:
    """无效 / 过期 / 签名不符 → None"""
    s = settings or get_settings()
    try:
        out = jwt.decode(token, s.JWT_SECRET, algorithms=[s.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    return out if isinstance(out, dict) else None


def identity_from_claims(claims: Dict[str, Any]) -> Optional[Identity]:
    raw_uid = claims.get("user_id")
    try:
        user_id = int(raw_uid)
    except (TypeError, ValueError):
        return None
    if user_id <= 0:
        return None
    role = str(claims.get("role") or ROLE_USER)
    return Identity(user_id=user_id, role=role, email=claims.get("email"))

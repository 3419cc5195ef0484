# app/db/__init__.py
from __future__ import annotations

from app.db.base import Base, init_models
from app.db.session import Database

__all__ = ["Base", "Database", "init_models"]

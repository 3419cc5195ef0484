# app/api/envelope.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def make_envelope(*, error: bool, message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    """
    兼容前端的响应信封（冻结合同）：

        {"error": bool, "message": str, "data": object | null}
    """
    return {"error": bool(error), "message": str(message), "data": data}


def ok(data: Optional[Any] = None, message: str = "Success", *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(make_envelope(error=False, message=message, data=data)),
    )


def fail(status_code: int, message: str, data: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(
        status_code=int(status_code),
        content=jsonable_encoder(make_envelope(error=True, message=message, data=data)),
    )

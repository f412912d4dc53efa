from __future__ import annotations

from fastapi.responses import JSONResponse


async def health() -> JSONResponse:
    return JSONResponse({"status": "ready"})

from __future__ import annotations

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ..client.custody import QUERY_PREFIX, SUBMIT_PREFIX
from ..types import SignedRequest

_FORWARDABLE = (f"{SUBMIT_PREFIX}sign_raw_payload", f"{QUERY_PREFIX}get_activity")


def _allowed(url: str, base_url: str) -> bool:
    return any(url == f"{base_url}{path}" for path in _FORWARDABLE)


async def post_proxy(request: Request) -> JSONResponse:
    """Forward a browser-stamped custody request.

    The stamp is produced by the user's passkey, so the server adds no
    authority of its own; it only restricts which endpoints can be reached.
    """
    try:
        body = await request.json()
        signed = SignedRequest.from_dict(body)
    except (KeyError, TypeError, ValueError, AttributeError) as err:
        raise HTTPException(status_code=400, detail="invalid signed request") from err

    settings = request.app.state.settings
    if not _allowed(signed.url, settings.custody_base_url.rstrip("/")):
        raise HTTPException(status_code=403, detail="custody endpoint not allowed")

    data = await request.app.state.custody.forward(signed)
    return JSONResponse(data)

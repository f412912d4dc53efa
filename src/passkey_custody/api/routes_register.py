from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


async def get_register_challenge(request: Request) -> JSONResponse:
    """Get a challenge for passkey registration."""
    challenge = request.app.state.orchestrator.issue_challenge()
    return JSONResponse({"challenge": challenge})


async def post_register(request: Request) -> JSONResponse:
    """Verify passkey registration and provision a custody-held Solana key."""
    try:
        body = await request.json()
    except ValueError as err:
        raise HTTPException(status_code=400, detail="invalid JSON body") from err
    if not isinstance(body, dict) or "registration" not in body:
        raise HTTPException(status_code=400, detail="missing registration")

    registration = await request.app.state.orchestrator.register(body["registration"])
    logger.info(f"Registered sub-organization {registration.sub_organization_id}")
    return JSONResponse(registration.to_dict())

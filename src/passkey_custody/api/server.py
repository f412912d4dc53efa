from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..client.custody import CustodyClient
from ..config import Settings
from ..db.ledger import OrphanLedger
from ..db.sqlalchemy_manager import init_db
from ..errors import (
    RETRY_MESSAGE,
    ChallengeError,
    PasskeyCustodyError,
    RegistrationRejectedError,
)
from ..registration.orchestrator import RegistrationOrchestrator
from ..security.ceremony import WebAuthnAttestationVerifier
from ..security.challenge_token import ChallengeToken
from .health import health
from .routes_proxy import post_proxy
from .routes_register import get_register_challenge, post_register

logger = logging.getLogger(__name__)


def _status_for(err: PasskeyCustodyError) -> int:
    if isinstance(err, (RegistrationRejectedError, ChallengeError)):
        return 400
    return 502


async def _custody_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = _status_for(exc) if isinstance(exc, PasskeyCustodyError) else 500
    return JSONResponse(
        {"detail": RETRY_MESSAGE, "error": type(exc).__name__},
        status_code=status,
    )


def build_orchestrator(settings: Settings, custody: CustodyClient) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        settings=settings,
        challenges=ChallengeToken.from_settings(settings),
        custody=custody,
        attestation_verifier=WebAuthnAttestationVerifier.from_settings(settings),
    )


def create_app(
    settings: Settings,
    custody: CustodyClient | None = None,
    orchestrator: RegistrationOrchestrator | None = None,
) -> FastAPI:
    """Build the FastAPI app serving the challenge, registration and proxy routes."""
    custody = custody or CustodyClient(settings)
    orchestrator = orchestrator or build_orchestrator(settings, custody)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        manager = None
        if settings.ledger_url and orchestrator.ledger is None:
            manager = await init_db(settings.ledger_url)
            orchestrator.ledger = OrphanLedger(manager)
            logger.info("Orphan ledger initialized")
        try:
            yield
        finally:
            if manager is not None:
                await manager.close()

    app = FastAPI(title="Passkey Custody", lifespan=lifespan)
    app.state.settings = settings
    app.state.custody = custody
    app.state.orchestrator = orchestrator

    app.add_api_route("/health", health, methods=["GET"])
    app.add_api_route("/api/register", get_register_challenge, methods=["GET"])
    app.add_api_route("/api/register", post_register, methods=["POST"])
    app.add_api_route("/api/turnkey/proxy", post_proxy, methods=["POST"])
    app.add_exception_handler(PasskeyCustodyError, _custody_error_handler)
    return app

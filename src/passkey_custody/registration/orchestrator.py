"""Passkey registration: challenge, ceremony check, provisioning and quorum handoff.

A registration either ends in a :class:`Registration` whose sub-organization
is controlled by the passkey alone, or raises. Nothing is repaired or retried;
a sub-organization created before a failure is left in place and recorded in
the orphan ledger for out-of-band cleanup.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from typing import Any

from ..client.custody import CURVE_ED25519, CustodyClient
from ..config import Settings
from ..db.ledger import OrphanLedger
from ..errors import (
    ChallengeError,
    MissingResultError,
    PasskeyCustodyError,
    QuorumHandoffFailedError,
    RegistrationRejectedError,
)
from ..security.ceremony import AttestationVerifier, ParsedAttestation, ShapeInvalid, parse_attestation
from ..security.challenge_token import ChallengeToken
from ..security.verifier import encode_public_key
from ..types import Registration

logger = logging.getLogger(__name__)

REGISTER = "register"


class RegistrationState(str, enum.Enum):
    CHALLENGE_REQUESTED = "challenge_requested"
    CEREMONY_PENDING = "ceremony_pending"
    CEREMONY_RECEIVED = "ceremony_received"
    IDENTITY_PROVISIONING = "identity_provisioning"
    QUORUM_HANDOFF = "quorum_handoff"
    REGISTERED = "registered"
    FAILED = "failed"


class _Ceremony:
    """Per-call progress record; never shared between registrations."""

    def __init__(self) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.state = RegistrationState.CEREMONY_RECEIVED
        self.sub_organization_id: str | None = None

    def advance(self, state: RegistrationState) -> None:
        logger.info(f"Registration {self.id}: {self.state.value} -> {state.value}")
        self.state = state


class RegistrationOrchestrator:
    def __init__(
        self,
        settings: Settings,
        challenges: ChallengeToken,
        custody: CustodyClient,
        attestation_verifier: AttestationVerifier,
        ledger: OrphanLedger | None = None,
    ) -> None:
        self.settings = settings
        self.challenges = challenges
        self.custody = custody
        self.attestation_verifier = attestation_verifier
        self.ledger = ledger

    def issue_challenge(self) -> str:
        """Start a registration: the returned token is the WebAuthn challenge."""
        logger.info(
            f"Registration challenge issued ({RegistrationState.CHALLENGE_REQUESTED.value} -> "
            f"{RegistrationState.CEREMONY_PENDING.value})"
        )
        return self.challenges.issue(REGISTER)

    async def register(
        self,
        attestation: Any,
        origin: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Registration:
        """Verify a completed passkey ceremony and provision its custody account."""
        ceremony = _Ceremony()
        try:
            parsed = self._verify_ceremony(ceremony, attestation, origin)

            ceremony.advance(RegistrationState.IDENTITY_PROVISIONING)
            sub_organization_id = await self._create_sub_organization(parsed, cancel_event)
            ceremony.sub_organization_id = sub_organization_id
            private_key_id, public_key = await self._create_signing_key(
                sub_organization_id, cancel_event
            )

            ceremony.advance(RegistrationState.QUORUM_HANDOFF)
            await self._handoff_quorum(ceremony, sub_organization_id, cancel_event)
        except asyncio.CancelledError:
            failed_in = ceremony.state
            ceremony.advance(RegistrationState.FAILED)
            await self._record_orphan(ceremony, failed_in, "registration cancelled")
            raise
        except PasskeyCustodyError as err:
            failed_in = ceremony.state
            ceremony.advance(RegistrationState.FAILED)
            logger.warning(
                f"Registration {ceremony.id} failed during {failed_in.value}: "
                f"{type(err).__name__}: {err}"
            )
            await self._record_orphan(ceremony, failed_in, f"{type(err).__name__}: {err}")
            raise

        ceremony.advance(RegistrationState.REGISTERED)
        return Registration(
            sub_organization_id=sub_organization_id,
            private_key_id=private_key_id,
            public_key=public_key,
        )

    def _verify_ceremony(
        self, ceremony: _Ceremony, attestation: Any, origin: str | None
    ) -> ParsedAttestation:
        parsed = parse_attestation(attestation)
        if isinstance(parsed, ShapeInvalid):
            raise RegistrationRejectedError(
                f"attestation rejected: {parsed.reason}", ceremony.state.value
            )

        try:
            self.challenges.verify(REGISTER, parsed.challenge)
        except ChallengeError as err:
            raise RegistrationRejectedError(
                f"challenge rejected: {err}", ceremony.state.value
            ) from err

        try:
            self.attestation_verifier(parsed, origin)
        except Exception as err:
            # py_webauthn raises a family of exceptions for bad attestations.
            raise RegistrationRejectedError(
                "attestation verification failed", ceremony.state.value
            ) from err
        return parsed

    async def _create_sub_organization(
        self, parsed: ParsedAttestation, cancel_event: asyncio.Event | None
    ) -> str:
        settings = self.settings
        root_users = [
            {
                "userName": settings.owner_user_name,
                "apiKeys": [],
                "authenticators": [
                    {
                        "authenticatorName": settings.owner_user_name,
                        "challenge": parsed.challenge,
                        "attestation": {
                            "credentialId": parsed.credential_id,
                            "clientDataJson": parsed.client_data_json,
                            "attestationObject": parsed.attestation_object,
                            "transports": parsed.transports,
                        },
                    }
                ],
            },
            # Helper root user lets the service API key create the signing key
            # without a second passkey prompt. Removed by the quorum handoff.
            {
                "userName": settings.helper_user_name,
                "apiKeys": [
                    {
                        "apiKeyName": settings.helper_user_name,
                        "publicKey": settings.api_public_key,
                    }
                ],
                "authenticators": [],
            },
        ]
        name = f"{settings.sub_organization_prefix} {uuid.uuid4()}"
        return await self.custody.create_sub_organization(
            name, root_users, root_quorum_threshold=1, cancel_event=cancel_event
        )

    async def _create_signing_key(
        self, sub_organization_id: str, cancel_event: asyncio.Event | None
    ) -> tuple[str, str]:
        private_key_id = await self.custody.create_private_key(
            sub_organization_id,
            self.settings.private_key_name,
            curve=CURVE_ED25519,
            cancel_event=cancel_event,
        )
        private_key = await self.custody.get_private_key(sub_organization_id, private_key_id)
        try:
            public_key = encode_public_key(bytes.fromhex(private_key["publicKey"]))
        except (TypeError, ValueError) as err:
            raise MissingResultError(
                f"private key {private_key_id} has a malformed Ed25519 public key"
            ) from err
        return private_key_id, public_key

    async def _handoff_quorum(
        self,
        ceremony: _Ceremony,
        sub_organization_id: str,
        cancel_event: asyncio.Event | None,
    ) -> None:
        try:
            users = await self.custody.list_users(sub_organization_id)
        except PasskeyCustodyError as err:
            raise QuorumHandoffFailedError(
                f"listing users failed: {err}", sub_organization_id, ceremony.state.value
            ) from err

        owners = [u for u in users if u.user_name == self.settings.owner_user_name]
        if len(owners) != 1:
            raise QuorumHandoffFailedError(
                f"expected one {self.settings.owner_user_name!r} user, found {len(owners)}",
                sub_organization_id,
                ceremony.state.value,
            )

        try:
            await self.custody.update_root_quorum(
                sub_organization_id,
                [owners[0].user_id],
                threshold=1,
                cancel_event=cancel_event,
            )
        except PasskeyCustodyError as err:
            raise QuorumHandoffFailedError(
                f"root quorum update failed: {err}", sub_organization_id, ceremony.state.value
            ) from err

    async def _record_orphan(
        self, ceremony: _Ceremony, stage: RegistrationState, reason: str
    ) -> None:
        if self.ledger is None or ceremony.sub_organization_id is None:
            return
        try:
            await self.ledger.record(ceremony.sub_organization_id, stage.value, reason)
        except Exception:
            logger.error(
                f"Failed to record orphaned sub-organization {ceremony.sub_organization_id}",
                exc_info=True,
            )

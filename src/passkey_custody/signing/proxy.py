from __future__ import annotations

import asyncio
import logging

from ..client.custody import CustodyClient
from ..client.stamp import Stamper
from ..errors import MissingResultError
from ..security.verifier import require_valid_signature
from ..types import Activity, Registration, SignedRequest, SigningRequest, SigningResult

logger = logging.getLogger(__name__)

COMPONENT_BYTES = 32


def _component(result: dict, name: str, activity: Activity) -> bytes:
    value = result.get(name)
    if not isinstance(value, str) or not value or len(value) > COMPONENT_BYTES * 2:
        raise MissingResultError(
            f"malformed SIGN_RAW_PAYLOAD result component {name!r}",
            activity.id,
            activity.status,
            activity.type,
        )
    try:
        return bytes.fromhex(value.rjust(COMPONENT_BYTES * 2, "0"))
    except ValueError as err:
        raise MissingResultError(
            f"malformed SIGN_RAW_PAYLOAD result component {name!r}",
            activity.id,
            activity.status,
            activity.type,
        ) from err


def signature_from_activity(activity: Activity) -> bytes:
    """Concatenate the ``r`` and ``s`` components of a completed sign activity."""
    result = activity.result.get("signRawPayloadResult")
    if not isinstance(result, dict):
        raise MissingResultError(
            "missing SIGN_RAW_PAYLOAD result", activity.id, activity.status, activity.type
        )
    return _component(result, "r", activity) + _component(result, "s", activity)


class SigningProxy:
    """Turn byte payloads into custody-computed Ed25519 signatures.

    Every call is a fresh remote round trip; nothing is cached and nothing is
    retried. ``stamper`` authenticates the sign request and must be the
    passkey owner's credential; there is no fallback to the service API key.
    """

    def __init__(self, custody: CustodyClient, stamper: Stamper) -> None:
        if stamper is None:
            raise ValueError("SigningProxy needs the key owner's credential")
        self.custody = custody
        self.stamper = stamper

    def build_signed_request(
        self, payload: bytes, sub_organization_id: str, private_key_id: str
    ) -> SignedRequest:
        return self.custody.sign_raw_payload_request(
            payload, sub_organization_id, private_key_id, self.stamper
        )

    async def sign(
        self,
        payload: bytes,
        sub_organization_id: str,
        private_key_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> bytes:
        signed = self.build_signed_request(bytes(payload), sub_organization_id, private_key_id)
        activity = await self.custody.submit_signed(signed, sub_organization_id, cancel_event)
        signature = signature_from_activity(activity)
        logger.info(f"Signed {len(payload)} bytes with key {private_key_id}")
        return signature

    async def sign_request(
        self, request: SigningRequest, cancel_event: asyncio.Event | None = None
    ) -> SigningResult:
        signature = await self.sign(
            request.payload, request.sub_organization_id, request.private_key_id, cancel_event
        )
        return SigningResult(signature=signature)

    async def sign_verified(
        self,
        payload: bytes,
        registration: Registration,
        cancel_event: asyncio.Event | None = None,
    ) -> bytes:
        """Sign and check the signature against the registration's public key.

        Raises VerificationFailedError instead of returning an unusable signature.
        """
        signature = await self.sign(
            payload, registration.sub_organization_id, registration.private_key_id, cancel_event
        )
        return require_valid_signature(payload, signature, registration.public_key)

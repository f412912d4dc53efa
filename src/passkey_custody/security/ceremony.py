"""Parsing and verification of WebAuthn registration ceremonies."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from webauthn import base64url_to_bytes, verify_registration_response
from webauthn.helpers.structs import (
    AuthenticatorAttestationResponse,
    AuthenticatorTransport,
    PublicKeyCredentialType,
    RegistrationCredential,
)

from ..config import Settings
from .challenge_token import b64url_decode

logger = logging.getLogger(__name__)

_TRANSPORT_PREFIX = "AUTHENTICATOR_TRANSPORT_"


@dataclass(frozen=True)
class ParsedAttestation:
    """Attestation fields the registration flow relies on."""

    credential_id: str
    challenge: str
    client_data_json: str
    attestation_object: str
    transports: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ShapeInvalid:
    reason: str


def _required_str(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def parse_attestation(obj: Any) -> ParsedAttestation | ShapeInvalid:
    """Validate a loosely-typed attestation object and extract the echoed challenge.

    The object uses the custody service's attestation shape
    (``credentialId``, ``clientDataJson``, ``attestationObject``,
    ``transports``). Never raises; bad input comes back as ``ShapeInvalid``.
    """
    if not isinstance(obj, dict):
        return ShapeInvalid("attestation must be an object")

    credential_id = _required_str(obj, "credentialId")
    client_data_json = _required_str(obj, "clientDataJson")
    attestation_object = _required_str(obj, "attestationObject")
    if credential_id is None:
        return ShapeInvalid("missing credentialId")
    if client_data_json is None:
        return ShapeInvalid("missing clientDataJson")
    if attestation_object is None:
        return ShapeInvalid("missing attestationObject")

    transports = obj.get("transports", [])
    if not isinstance(transports, list) or not all(isinstance(t, str) for t in transports):
        return ShapeInvalid("transports must be a list of strings")

    try:
        client_data = json.loads(b64url_decode(client_data_json).decode("utf-8"))
    except (UnicodeError, ValueError):
        return ShapeInvalid("clientDataJson is not base64url JSON")
    if not isinstance(client_data, dict):
        return ShapeInvalid("clientDataJson is not an object")
    if client_data.get("type") != "webauthn.create":
        return ShapeInvalid("clientDataJson type is not webauthn.create")
    challenge = client_data.get("challenge")
    if not isinstance(challenge, str) or not challenge:
        return ShapeInvalid("clientDataJson has no challenge")

    return ParsedAttestation(
        credential_id=credential_id,
        challenge=challenge,
        client_data_json=client_data_json,
        attestation_object=attestation_object,
        transports=list(transports),
    )


class AttestationVerifier(Protocol):
    def __call__(self, parsed: ParsedAttestation, origin: str | None = None) -> None: ...


def _to_webauthn_transports(values: list[str]) -> list[AuthenticatorTransport]:
    transports = []
    for value in values:
        name = value.removeprefix(_TRANSPORT_PREFIX).lower()
        try:
            transports.append(AuthenticatorTransport(name))
        except ValueError:
            logger.debug(f"Ignoring unknown authenticator transport {value!r}")
    return transports


class WebAuthnAttestationVerifier:
    """Verify attestation cryptography with py_webauthn against the echoed challenge."""

    def __init__(self, rp_id: str, origin: str) -> None:
        self.rp_id = rp_id
        self.origin = origin

    @classmethod
    def from_settings(cls, settings: Settings) -> WebAuthnAttestationVerifier:
        return cls(rp_id=settings.rp_id, origin=settings.expected_origin)

    def __call__(self, parsed: ParsedAttestation, origin: str | None = None) -> None:
        credential = RegistrationCredential(
            id=parsed.credential_id,
            raw_id=base64url_to_bytes(parsed.credential_id),
            response=AuthenticatorAttestationResponse(
                client_data_json=base64url_to_bytes(parsed.client_data_json),
                attestation_object=base64url_to_bytes(parsed.attestation_object),
                transports=_to_webauthn_transports(parsed.transports) or None,
            ),
            type=PublicKeyCredentialType.PUBLIC_KEY,
        )
        verify_registration_response(
            credential=credential,
            expected_challenge=base64url_to_bytes(parsed.challenge),
            expected_rp_id=self.rp_id,
            expected_origin=origin or self.origin,
            require_user_verification=True,
        )

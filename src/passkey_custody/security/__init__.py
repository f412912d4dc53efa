"""Security primitives: challenge tokens, ceremony parsing, signature checks."""

from .ceremony import (
    AttestationVerifier,
    ParsedAttestation,
    ShapeInvalid,
    WebAuthnAttestationVerifier,
    parse_attestation,
)
from .challenge_token import ChallengeToken
from .verifier import (
    decode_public_key,
    encode_public_key,
    require_valid_signature,
    verify_signature,
)

__all__ = [
    "AttestationVerifier",
    "ChallengeToken",
    "ParsedAttestation",
    "ShapeInvalid",
    "WebAuthnAttestationVerifier",
    "decode_public_key",
    "encode_public_key",
    "parse_attestation",
    "require_valid_signature",
    "verify_signature",
]

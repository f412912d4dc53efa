"""Type definitions for the passkey custody SDK."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TERMINAL_SUCCESS = "ACTIVITY_STATUS_COMPLETED"
TERMINAL_FAILURES = frozenset(
    {
        "ACTIVITY_STATUS_FAILED",
        "ACTIVITY_STATUS_REJECTED",
        "ACTIVITY_STATUS_CONSENSUS_NEEDED",
    }
)
PENDING_STATUSES = frozenset({"ACTIVITY_STATUS_CREATED", "ACTIVITY_STATUS_PENDING"})


@dataclass(frozen=True)
class Registration:
    sub_organization_id: str
    private_key_id: str
    public_key: str  # base58 Ed25519 public key (Solana address)

    def to_dict(self) -> dict[str, str]:
        """Convert to the camelCase shape the browser stores."""
        return {
            "subOrganizationId": self.sub_organization_id,
            "privateKeyId": self.private_key_id,
            "publicKey": self.public_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Registration:
        return cls(
            sub_organization_id=data["subOrganizationId"],
            private_key_id=data["privateKeyId"],
            public_key=data["publicKey"],
        )


@dataclass(frozen=True)
class SigningRequest:
    payload: bytes
    sub_organization_id: str
    private_key_id: str


@dataclass(frozen=True)
class SigningResult:
    signature: bytes  # r || s, 64 bytes


@dataclass
class Activity:
    """A custody-service activity as returned by submit and get_activity."""

    id: str
    status: str
    type: str
    organization_id: str | None = None
    result: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Activity:
        result = data.get("result")
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            type=str(data.get("type", "")),
            organization_id=data.get("organizationId"),
            result=result if isinstance(result, dict) else {},
        )

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == TERMINAL_SUCCESS

    @property
    def is_failed(self) -> bool:
        return self.status in TERMINAL_FAILURES


@dataclass(frozen=True)
class SignedRequest:
    """A request body stamped by some credential, ready to be forwarded."""

    url: str
    body: str
    stamp_header_name: str
    stamp_header_value: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "body": self.body,
            "stamp": {
                "stampHeaderName": self.stamp_header_name,
                "stampHeaderValue": self.stamp_header_value,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedRequest:
        stamp = data.get("stamp") or {}
        return cls(
            url=str(data["url"]),
            body=str(data["body"]),
            stamp_header_name=str(stamp["stampHeaderName"]),
            stamp_header_value=str(stamp["stampHeaderValue"]),
        )


@dataclass(frozen=True)
class CustodyUser:
    user_id: str
    user_name: str

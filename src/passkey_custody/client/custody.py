"""Async client for the remote key-custody service."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from ..config import Settings
from ..errors import CustodyRequestError, MissingResultError
from ..types import Activity, CustodyUser, SignedRequest
from .http import CustodyHttpClient
from .polling import poll_activity
from .stamp import ApiKeyStamper, Stamper

logger = logging.getLogger(__name__)

SUBMIT_PREFIX = "/public/v1/submit/"
QUERY_PREFIX = "/public/v1/query/"

CREATE_SUB_ORGANIZATION = "ACTIVITY_TYPE_CREATE_SUB_ORGANIZATION_V2"
CREATE_PRIVATE_KEYS = "ACTIVITY_TYPE_CREATE_PRIVATE_KEYS_V2"
UPDATE_ROOT_QUORUM = "ACTIVITY_TYPE_UPDATE_ROOT_QUORUM"
SIGN_RAW_PAYLOAD = "ACTIVITY_TYPE_SIGN_RAW_PAYLOAD"

CURVE_ED25519 = "CURVE_ED25519"


def _timestamp_ms() -> str:
    return str(int(time.time() * 1000))


def activity_body(activity_type: str, organization_id: str, parameters: dict[str, Any]) -> dict:
    return {
        "type": activity_type,
        "timestampMs": _timestamp_ms(),
        "organizationId": organization_id,
        "parameters": parameters,
    }


class CustodyClient:
    """Typed operations over the custody API, each polled to a terminal status.

    Requests are stamped with the service API key unless a different
    ``Stamper`` is passed for a single call.
    """

    def __init__(
        self,
        settings: Settings,
        http: CustodyHttpClient | None = None,
        stamper: Stamper | None = None,
    ) -> None:
        self.settings = settings
        if http is None:
            if stamper is None and settings.api_private_key:
                stamper = ApiKeyStamper.from_settings(settings)
            http = CustodyHttpClient(settings.custody_base_url, stamper, settings.request_timeout)
        self.http = http

    async def _post(
        self, path: str, body: dict[str, Any], stamper: Stamper | None = None
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self.http.post, path, body, stamper)

    async def _query(self, operation: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._post(f"{QUERY_PREFIX}{operation}", body)

    async def get_activity(self, organization_id: str, activity_id: str) -> Activity:
        data = await self._query(
            "get_activity", {"organizationId": organization_id, "activityId": activity_id}
        )
        return _activity_from_response(data)

    async def wait_for(
        self,
        activity: Activity,
        organization_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> Activity:
        """Poll an activity until it completes, using the configured interval and deadline."""
        return await poll_activity(
            lambda: self.get_activity(organization_id, activity.id),
            activity,
            interval=self.settings.poll_interval,
            timeout=self.settings.poll_timeout,
            cancel_event=cancel_event,
        )

    async def submit(
        self,
        operation: str,
        body: dict[str, Any],
        stamper: Stamper | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Activity:
        """Submit an activity and wait for it to complete."""
        data = await self._post(f"{SUBMIT_PREFIX}{operation}", body, stamper)
        activity = _activity_from_response(data)
        logger.info(f"Submitted {activity.type} activity {activity.id} ({activity.status})")
        return await self.wait_for(activity, body["organizationId"], cancel_event)

    async def submit_signed(
        self,
        signed: SignedRequest,
        organization_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> Activity:
        """Forward a request stamped elsewhere (e.g. by a passkey) and wait for it."""
        data = await self.forward(signed)
        activity = _activity_from_response(data)
        logger.info(f"Forwarded {activity.type} activity {activity.id} ({activity.status})")
        return await self.wait_for(activity, organization_id, cancel_event)

    async def forward(self, signed: SignedRequest) -> dict[str, Any]:
        return await asyncio.to_thread(self.http.send, signed)

    def build_signed(
        self, operation: str, body: dict[str, Any], stamper: Stamper | None = None
    ) -> SignedRequest:
        return self.http.build(f"{SUBMIT_PREFIX}{operation}", body, stamper)

    async def create_sub_organization(
        self,
        name: str,
        root_users: list[dict[str, Any]],
        root_quorum_threshold: int = 1,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        body = activity_body(
            CREATE_SUB_ORGANIZATION,
            self.settings.organization_id,
            {
                "subOrganizationName": name,
                "rootQuorumThreshold": root_quorum_threshold,
                "rootUsers": root_users,
            },
        )
        activity = await self.submit("create_sub_organization", body, cancel_event=cancel_event)
        result = activity.result.get("createSubOrganizationResult") or {}
        sub_organization_id = result.get("subOrganizationId")
        if not sub_organization_id:
            raise MissingResultError(
                "missing CREATE_SUB_ORGANIZATION result", activity.id, activity.status, activity.type
            )
        return sub_organization_id

    async def create_private_key(
        self,
        organization_id: str,
        name: str,
        curve: str = CURVE_ED25519,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        body = activity_body(
            CREATE_PRIVATE_KEYS,
            organization_id,
            {
                "privateKeys": [
                    {
                        "privateKeyName": name,
                        "curve": curve,
                        "addressFormats": [],
                        "privateKeyTags": [],
                    }
                ]
            },
        )
        activity = await self.submit("create_private_keys", body, cancel_event=cancel_event)
        result = activity.result.get("createPrivateKeysResultV2") or {}
        keys = result.get("privateKeys") or []
        private_key_id = keys[0].get("privateKeyId") if keys else None
        if not private_key_id:
            raise MissingResultError(
                "missing CREATE_PRIVATE_KEYS result", activity.id, activity.status, activity.type
            )
        return private_key_id

    async def get_private_key(self, organization_id: str, private_key_id: str) -> dict[str, Any]:
        data = await self._query(
            "get_private_key",
            {"organizationId": organization_id, "privateKeyId": private_key_id},
        )
        private_key = data.get("privateKey")
        if not isinstance(private_key, dict) or not private_key.get("publicKey"):
            raise MissingResultError(f"missing public key for private key {private_key_id}")
        return private_key

    async def list_users(self, organization_id: str) -> list[CustodyUser]:
        data = await self._query("list_users", {"organizationId": organization_id})
        users = data.get("users")
        if not isinstance(users, list):
            raise MissingResultError(f"missing users for organization {organization_id}")
        return [
            CustodyUser(user_id=str(u.get("userId", "")), user_name=str(u.get("userName", "")))
            for u in users
            if isinstance(u, dict)
        ]

    async def update_root_quorum(
        self,
        organization_id: str,
        user_ids: list[str],
        threshold: int = 1,
        cancel_event: asyncio.Event | None = None,
    ) -> Activity:
        body = activity_body(
            UPDATE_ROOT_QUORUM,
            organization_id,
            {"userIds": user_ids, "threshold": threshold},
        )
        return await self.submit("update_root_quorum", body, cancel_event=cancel_event)

    def sign_raw_payload_request(
        self,
        payload: bytes,
        organization_id: str,
        private_key_id: str,
        stamper: Stamper,
    ) -> SignedRequest:
        """Build a stamped SIGN_RAW_PAYLOAD request over the hex-encoded payload.

        ``stamper`` must be the key owner's credential. The client's own API
        key is never used here, so bootstrap rights left on a sub-organization
        cannot authorize a signature.
        """
        if stamper is None:
            raise ValueError("sign requests need the key owner's credential")
        body = activity_body(
            SIGN_RAW_PAYLOAD,
            organization_id,
            {
                "privateKeyId": private_key_id,
                "payload": payload.hex(),
                "encoding": "PAYLOAD_ENCODING_HEXADECIMAL",
                "hashFunction": "HASH_FUNCTION_NOT_APPLICABLE",
            },
        )
        return self.build_signed("sign_raw_payload", body, stamper)


def _activity_from_response(data: dict[str, Any]) -> Activity:
    activity = data.get("activity")
    if not isinstance(activity, dict):
        raise CustodyRequestError("custody response has no activity")
    return Activity.from_dict(activity)

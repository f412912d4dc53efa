from __future__ import annotations

import json
import logging
from typing import Any

import requests

from ..errors import CustodyRequestError
from ..types import SignedRequest
from .stamp import Stamper

logger = logging.getLogger(__name__)


class CustodyHttpClient:
    """Stamped JSON POSTs against the custody service API."""

    def __init__(self, base_url: str, stamper: Stamper | None, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.stamper = stamper
        self.timeout = timeout

    def build(
        self, path: str, body: dict[str, Any], stamper: Stamper | None = None
    ) -> SignedRequest:
        """Serialize and stamp a request without sending it."""
        stamper = stamper or self.stamper
        if stamper is None:
            raise CustodyRequestError("no credential configured to stamp custody requests")

        # The stamp covers these exact bytes, so serialize once.
        body_text = json.dumps(body, separators=(",", ":"))
        header_name, header_value = stamper.stamp(body_text)
        return SignedRequest(
            url=f"{self.base_url}{path}",
            body=body_text,
            stamp_header_name=header_name,
            stamp_header_value=header_value,
        )

    def post(
        self, path: str, body: dict[str, Any], stamper: Stamper | None = None
    ) -> dict[str, Any]:
        return self.send(self.build(path, body, stamper))

    def send(self, signed: SignedRequest) -> dict[str, Any]:
        """Send a pre-stamped request and return the decoded JSON response."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            signed.stamp_header_name: signed.stamp_header_value,
        }
        try:
            resp = requests.post(
                signed.url, data=signed.body.encode("utf-8"), headers=headers, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise CustodyRequestError(f"custody request failed: {e}") from e

        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.warning(f"Custody API returned {resp.status_code} for {signed.url}")
            raise CustodyRequestError(
                f"HTTP error from custody API: {resp.status_code} - {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e

        try:
            data = resp.json()
        except requests.exceptions.JSONDecodeError as e:
            raise CustodyRequestError(
                f"Invalid JSON response from custody API: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e
        if not isinstance(data, dict):
            raise CustodyRequestError("custody API response is not an object", resp.status_code)
        return data

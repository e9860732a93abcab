"""HTTP transport used by the client to reach the sync endpoints."""
from __future__ import annotations

import json
from typing import Optional

import requests
from pydantic import ValidationError

from core.settings import SYNC
from schemas.sync import BatchSyncResponse


class SyncTransportError(Exception):
    """No usable response: network failure, timeout, non-2xx or invalid body."""


class HttpSyncTransport:
    def __init__(
        self,
        api_url: Optional[str] = None,
        *,
        health_timeout: Optional[float] = None,
        batch_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = (api_url or SYNC.api_url).rstrip("/")
        self.health_timeout = health_timeout or SYNC.health_timeout_sec
        self.batch_timeout = batch_timeout or SYNC.batch_timeout_sec
        self.session = session or requests.Session()

    def health(self) -> bool:
        try:
            response = self.session.get(f"{self.api_url}/sync/health", timeout=self.health_timeout)
        except requests.RequestException:
            return False
        return 200 <= response.status_code < 300

    def post_batch(self, payload: dict) -> BatchSyncResponse:
        url = f"{self.api_url}/sync/batch"
        try:
            response = self.session.post(url, json=payload, timeout=self.batch_timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            raise SyncTransportError(f"Batch sync rejected with HTTP {status}") from exc
        except requests.RequestException as exc:
            raise SyncTransportError(f"Batch sync request failed: {exc}") from exc

        try:
            return BatchSyncResponse.model_validate(response.json())
        except (ValueError, json.JSONDecodeError, ValidationError) as exc:
            raise SyncTransportError(f"Invalid batch sync response: {exc}") from exc


__all__ = ["HttpSyncTransport", "SyncTransportError"]

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from datetime import tzinfo
from typing import Callable

from lifehelper import codec
from lifehelper.db import utc_now_iso
from lifehelper.models import Snapshot

logger = logging.getLogger(__name__)

COLLECTION_NAME = "users"


class RemoteStoreError(RuntimeError):
    pass


class RemoteUnavailableError(RemoteStoreError):
    """The document server could not be reached at all."""


class RemoteSnapshotStore:
    """One JSON snapshot document per user at ``{base_url}/users/{user_id}``."""

    max_attempts = 3
    timeout_s = 5

    def __init__(self, base_url: str, user_id: str, zone: tzinfo | None = None) -> None:
        if not base_url or not user_id:
            raise ValueError("remote store needs both a base url and a user id")
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.zone = zone

    @property
    def doc_url(self) -> str:
        return f"{self.base_url}/{COLLECTION_NAME}/{urllib.parse.quote(self.user_id, safe='')}"

    def _request(self, method: str, payload: dict | None = None) -> bytes | None:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(
            self.doc_url,
            data=data,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            method=method,
        )
        for attempt in range(1, self.max_attempts + 1):
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                    return resp.read()
            except urllib.error.HTTPError as exc:
                if exc.code == 404:
                    return None
                raise RemoteStoreError(f"{method} {self.doc_url} failed: HTTP {exc.code}") from exc
            except (urllib.error.URLError, TimeoutError, OSError) as exc:
                if attempt >= self.max_attempts:
                    logger.warning("Remote store %s unreachable after %d attempts: %s", self.base_url, attempt, exc)
                    raise RemoteUnavailableError(str(exc)) from exc
                time.sleep(0.25 * attempt)
        return None

    def load(self) -> Snapshot | None:
        body = self._request("GET")
        if not body:
            return None
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as exc:
            raise codec.SnapshotFormatError(f"remote document is not valid JSON: {exc}") from exc
        if isinstance(payload, dict):
            payload.pop("updatedAt", None)
        return codec.snapshot_from_dict(payload, self.zone)

    def save(self, snapshot: Snapshot) -> None:
        document = codec.snapshot_to_dict(snapshot)
        document["updatedAt"] = utc_now_iso()
        self._request("PUT", document)

    def clear(self) -> None:
        self._request("DELETE")

    def subscribe(self, on_change: Callable[[Snapshot | None], None], interval_s: float = 30.0) -> threading.Event:
        """Poll the document and call ``on_change`` whenever it differs from the last poll.

        Set the returned event to stop polling.
        """
        stop = threading.Event()

        def poll() -> None:
            last = None
            first = True
            while not stop.is_set():
                try:
                    current = self.load()
                except (RemoteStoreError, codec.SnapshotFormatError) as exc:
                    logger.warning("Remote poll failed: %s", exc)
                else:
                    if first or current != last:
                        on_change(current)
                    last, first = current, False
                stop.wait(interval_s)

        threading.Thread(target=poll, name=f"snapshot-poll-{self.user_id}", daemon=True).start()
        return stop

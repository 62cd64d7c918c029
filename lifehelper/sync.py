"""Decides where the snapshot lives and keeps the in-memory copy current.

Signed out (no remote store) everything goes to the local SQLite store.
Signed in, the remote document wins; a local snapshot is migrated to the
remote store the first time the remote one turns out to be empty.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Protocol

from lifehelper.codec import SnapshotFormatError
from lifehelper.models import Snapshot
from lifehelper.remote import RemoteStoreError, RemoteUnavailableError

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Offline - changes will sync when connection is restored"
SAVE_FAILED_MESSAGE = "Failed to save data. Please check your connection."
LOAD_FAILED_MESSAGE = "Failed to load data. Please check your connection."
CORRUPT_MESSAGE = "Saved data could not be read; starting fresh."


class SnapshotStore(Protocol):
    def load(self) -> Snapshot | None: ...

    def save(self, snapshot: Snapshot) -> None: ...

    def clear(self) -> None: ...


class SaveMethod(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class DataSync:
    def __init__(self, local: SnapshotStore, remote: SnapshotStore | None = None) -> None:
        self.local = local
        self.remote = remote
        self.snapshot: Snapshot | None = None
        self.save_method = SaveMethod.REMOTE if remote is not None else SaveMethod.LOCAL
        self.error: str | None = None
        self.pending = False
        self._lock = threading.Lock()

    def clear_error(self) -> None:
        self.error = None

    def _load_local(self) -> Snapshot | None:
        try:
            return self.local.load()
        except SnapshotFormatError as exc:
            logger.error("Stored snapshot is unreadable: %s", exc)
            self.error = CORRUPT_MESSAGE
            return None

    def load(self) -> Snapshot | None:
        self.error = None
        if self.remote is None:
            self.save_method = SaveMethod.LOCAL
            self.snapshot = self._load_local()
            return self.snapshot

        if self.pending and not self.flush():
            # keep working from the unsynced copy
            return self.snapshot
        try:
            remote_snapshot = self.remote.load()
            if remote_snapshot is not None:
                self.snapshot = remote_snapshot
                self.local.clear()
            else:
                local_snapshot = self._load_local()
                if local_snapshot is not None:
                    self.remote.save(local_snapshot)
                    self.local.clear()
                    logger.info("Migrated local snapshot to the remote store")
                self.snapshot = local_snapshot
            self.save_method = SaveMethod.REMOTE
        except (RemoteStoreError, SnapshotFormatError) as exc:
            logger.error("Loading the remote snapshot failed, falling back to local storage: %s", exc)
            self.snapshot = self._load_local()
            self.error = LOAD_FAILED_MESSAGE if self.error is None else self.error
            self.save_method = SaveMethod.LOCAL
        return self.snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Replace the in-memory snapshot first, then persist it."""
        with self._lock:
            self.snapshot = snapshot
            self.error = None
            if self.save_method is SaveMethod.LOCAL or self.remote is None:
                self.local.save(snapshot)
                return
            self._save_remote(snapshot)

    def _save_remote(self, snapshot: Snapshot) -> None:
        assert self.remote is not None
        try:
            self.remote.save(snapshot)
        except RemoteUnavailableError as exc:
            logger.warning("Remote save deferred, keeping a local copy: %s", exc)
            self.error = OFFLINE_MESSAGE
        except RemoteStoreError as exc:
            logger.error("Remote save failed, keeping a local copy: %s", exc)
            self.error = SAVE_FAILED_MESSAGE
        else:
            if self.pending:
                self.local.clear()
            self.pending = False
            return
        self.local.save(snapshot)
        self.pending = True

    def flush(self) -> bool:
        """Retry a deferred remote save. Returns True once nothing is pending."""
        with self._lock:
            if not self.pending or self.snapshot is None:
                return not self.pending
            self._save_remote(self.snapshot)
            if not self.pending:
                self.error = None
            return not self.pending

    def clear(self) -> None:
        with self._lock:
            self.local.clear()
            if self.remote is not None and self.save_method is SaveMethod.REMOTE:
                self.remote.clear()
            self.snapshot = None
            self.pending = False
            self.error = None

    def watch(self, interval_s: float = 30.0) -> threading.Event | None:
        """Follow remote edits made from other devices; last write wins."""
        if self.remote is None or not hasattr(self.remote, "subscribe"):
            return None
        return self.remote.subscribe(self._on_remote_change, interval_s)

    def _on_remote_change(self, snapshot: Snapshot | None) -> None:
        with self._lock:
            if self.pending or snapshot is None:
                return
            self.snapshot = snapshot

    def status(self) -> dict:
        if self.save_method is SaveMethod.LOCAL and self.remote is not None:
            return {"kind": "offline", "icon": "⚠️", "text": "Offline Mode - Data saved locally"}
        if self.save_method is SaveMethod.REMOTE:
            if self.pending:
                return {"kind": "offline", "icon": "⚠️", "text": "Offline Mode - Data saved locally"}
            return {"kind": "online", "icon": "☁️", "text": "Synced to cloud"}
        return {"kind": "local", "icon": "💾", "text": "Local storage only"}

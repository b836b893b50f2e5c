"""Persistent request cache.

Stores API responses as JSON files under one directory, one file per key.
Keys are opaque strings (usually full request URLs), so file names are the
SHA-256 of the key and the key itself is kept in the metadata envelope::

    {"meta": {"key": ..., "stored_at": ..., "expires_at": ...}, "data": ...}

Entries never expire on read. ``expires_at`` is only consulted by
``clear_expired()``, which callers run explicitly.

Every filesystem or decoding error is re-raised as ``StorageFailure``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path  # noqa: TC003
from typing import Any

from inat_explorer.errors import StorageFailure
from inat_explorer.schemas import CacheEntry

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".json"


class RequestCache:
    """Key/value store of timestamped JSON entries that survives restarts."""

    def __init__(self, base_dir: Path, ttl: timedelta | None = None) -> None:
        self.base = base_dir
        self.ttl = ttl

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.base / f"{digest}{ENTRY_SUFFIX}"

    def _load(self, full: Path) -> dict[str, Any] | None:
        try:
            with full.open(encoding="utf-8") as f:
                envelope: dict[str, Any] = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            msg = f"Cannot read cache entry {full.name}: {exc}"
            raise StorageFailure(msg) from exc
        if not isinstance(envelope, dict) or "meta" not in envelope:
            msg = f"Cache entry {full.name} has no metadata envelope"
            raise StorageFailure(msg)
        return envelope

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the full entry for ``key``, or None if absent."""
        envelope = self._load(self._path(key))
        if envelope is None:
            return None
        meta = envelope["meta"]
        return CacheEntry(
            key=meta.get("key", key),
            stored_at=meta["stored_at"],
            expires_at=meta.get("expires_at"),
            value=envelope.get("data"),
        )

    def get(self, key: str) -> Any:
        """Return the value last stored under ``key``, or None.

        A stored ``None`` is indistinguishable from a missing entry; any other
        return value (including ``[]`` or ``0``) means the key is present.
        """
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""
        now = datetime.now(UTC)
        meta: dict[str, Any] = {"key": key, "stored_at": now.isoformat()}
        if self.ttl is not None:
            meta["expires_at"] = (now + self.ttl).isoformat()

        full = self._path(key)
        try:
            self.base.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file and swap it in so readers never
            # see a half-written entry.
            fd, tmp_name = tempfile.mkstemp(dir=self.base, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({"meta": meta, "data": value}, f)
                os.replace(tmp_name, full)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            msg = f"Cannot write cache entry for {key}: {exc}"
            raise StorageFailure(msg) from exc
        logger.debug("Cached %s", key)

    def delete(self, key: str) -> None:
        """Remove the entry for ``key``; no-op if absent."""
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            msg = f"Cannot delete cache entry for {key}: {exc}"
            raise StorageFailure(msg) from exc

    def _entry_files(self) -> list[Path]:
        try:
            if not self.base.exists():
                return []
            return sorted(self.base.glob(f"*{ENTRY_SUFFIX}"))
        except OSError as exc:
            msg = f"Cannot list cache directory {self.base}: {exc}"
            raise StorageFailure(msg) from exc

    def clear(self) -> None:
        """Remove every entry in the store."""
        for full in self._entry_files():
            try:
                full.unlink(missing_ok=True)
            except OSError as exc:
                msg = f"Cannot delete cache entry {full.name}: {exc}"
                raise StorageFailure(msg) from exc

    def list_keys(self) -> list[str]:
        """All stored keys, sorted."""
        keys: list[str] = []
        for full in self._entry_files():
            envelope = self._load(full)
            if envelope is not None:
                keys.append(envelope["meta"]["key"])
        return sorted(keys)

    @staticmethod
    def is_expired(entry: CacheEntry, now: datetime | None = None) -> bool:
        """True if the entry carries an expiry stamp that has passed."""
        if entry.expires_at is None:
            return False
        expiry = entry.expires_at
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        return expiry <= (now or datetime.now(UTC))

    def clear_expired(self) -> int:
        """Delete expired entries. Returns how many were removed."""
        removed = 0
        for key in self.list_keys():
            entry = self.get_entry(key)
            if entry is not None and self.is_expired(entry):
                self.delete(key)
                removed += 1
        logger.info("Removed %d expired cache entries", removed)
        return removed

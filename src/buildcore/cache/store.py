"""Persisted argument-digest stores keyed by target identity."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Protocol

import cbor2

from buildcore.errors import CacheReadError, CacheWriteError

SCHEMA_VERSION = 1


class HashStore(Protocol):
    def get(self, identity: bytes) -> bytes | None:
        """Return the stored digest for *identity*, or ``None`` when absent."""

    def set(self, identity: bytes, digest: bytes) -> None:
        """Persist *digest* for *identity*, overwriting any prior value."""


class MemoryHashStore:
    """In-process store for tests and single-run builds."""

    def __init__(self) -> None:
        self._entries: dict[bytes, bytes] = {}

    def get(self, identity: bytes) -> bytes | None:
        return self._entries.get(identity)

    def set(self, identity: bytes, digest: bytes) -> None:
        self._entries[identity] = digest

    def __len__(self) -> int:
        return len(self._entries)


class FileHashStore:
    """One CBOR record file per identity under *root*.

    Records are replaced atomically, so writers on distinct identities never
    observe each other's partial writes.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, identity: bytes) -> Path:
        name = hashlib.sha256(identity).hexdigest()
        return self.root / name[:2] / f"{name}.cbor"

    def get(self, identity: bytes) -> bytes | None:
        path = self.path_for(identity)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheReadError(
                "Hash record is not readable.",
                hint="The target will be rebuilt.",
                context={"operation": "cache_read", "path": str(path)},
            ) from exc

        try:
            record = cbor2.loads(raw)
        except (cbor2.CBORDecodeError, ValueError) as exc:
            raise CacheReadError(
                "Hash record is not valid CBOR.",
                hint="The target will be rebuilt.",
                context={"operation": "cache_read", "path": str(path)},
            ) from exc

        if (
            not isinstance(record, dict)
            or record.get("schema_version") != SCHEMA_VERSION
            or not isinstance(record.get("digest"), bytes)
        ):
            raise CacheReadError(
                "Hash record has invalid structure.",
                hint="The target will be rebuilt.",
                context={"operation": "cache_read", "path": str(path)},
            )
        if record.get("identity") != identity:
            raise CacheReadError(
                "Hash record identity mismatch.",
                hint="The target will be rebuilt.",
                context={"operation": "cache_read", "path": str(path)},
            )
        return record["digest"]

    def set(self, identity: bytes, digest: bytes) -> None:
        path = self.path_for(identity)
        encoded = cbor2.dumps(
            {"schema_version": SCHEMA_VERSION, "identity": identity, "digest": digest},
            canonical=True,
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=".tmp-", dir=str(path.parent))
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(encoded)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CacheWriteError(
                "Failed to persist hash record.",
                hint="The target may be rebuilt unnecessarily next time.",
                context={"operation": "cache_write", "path": str(path)},
            ) from exc

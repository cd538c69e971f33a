"""Flag-change detection: force a rebuild when a target's argument list changes.

File timestamps only notice content changes. A target whose inputs are
untouched but whose resolved command line differs from the last successful
build is stale too. The scheduler asks :meth:`ArgsHashCache.is_stale` before
deciding to build; the engine records the new digest once the build succeeded.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from buildcore.cache.keys import args_digest, identity_key
from buildcore.cache.store import HashStore
from buildcore.errors import CacheReadError, CacheWriteError
from buildcore.models import Target, TargetIdentity
from buildcore.observability import StructuredLogger


class ArgsStatus(StrEnum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class HashCheck:
    """Outcome of comparing a fresh argument digest with the stored one."""

    identity: TargetIdentity
    key: bytes
    digest: bytes
    status: ArgsStatus

    @property
    def changed(self) -> bool:
        return self.status is ArgsStatus.CHANGED


class ArgsHashCache:
    def __init__(self, store: HashStore, logger: StructuredLogger | None = None) -> None:
        self.store = store
        self.logger = logger or StructuredLogger()

    def check_and_record(self, target: Target, args: Sequence[str]) -> HashCheck:
        """Compare *args* against the stored digest. Nothing is persisted here."""
        identity = target.identity
        key = identity_key(identity)
        digest = args_digest(args)
        try:
            stored = self.store.get(key)
        except CacheReadError as exc:
            self.logger.log_target(
                target,
                operation="cache_read",
                message=str(exc),
                level="warning",
                extra={"code": exc.code},
            )
            stored = None
        status = ArgsStatus.UNCHANGED if stored == digest else ArgsStatus.CHANGED
        return HashCheck(identity=identity, key=key, digest=digest, status=status)

    def is_stale(self, target: Target, args: Sequence[str]) -> bool:
        return self.check_and_record(target, args).changed

    def record(self, check: HashCheck) -> bool:
        """Persist the digest of a successful build. Returns ``False`` on write failure."""
        try:
            self.store.set(check.key, check.digest)
        except CacheWriteError as exc:
            self.logger.log(
                operation="cache_write",
                builder=check.identity.builder.value,
                package=check.identity.context.package,
                stage=check.identity.context.stage,
                way=str(check.identity.context.way),
                message=str(exc),
                level="warning",
                extra={"code": exc.code},
            )
            return False
        return True

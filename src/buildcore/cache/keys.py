"""Canonical encodings for argument digests and target identities."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

import cbor2

from buildcore.models import TargetIdentity

DIGEST_SIZE = hashlib.sha256().digest_size


def args_digest(args: Sequence[str]) -> bytes:
    """Return the SHA-256 digest of the ordered argument list."""
    encoded = cbor2.dumps([str(arg) for arg in args], canonical=True)
    return hashlib.sha256(encoded).digest()


def identity_key(identity: TargetIdentity) -> bytes:
    return cbor2.dumps(_identity_payload(identity), canonical=True)


def _identity_payload(identity: TargetIdentity) -> list[object]:
    context = identity.context
    return [
        identity.builder.value,
        context.stage,
        context.package,
        str(context.way),
        list(identity.outputs),
    ]

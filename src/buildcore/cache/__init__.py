"""Argument-digest cache APIs."""

from .args_hash import ArgsHashCache, ArgsStatus, HashCheck
from .keys import args_digest, identity_key
from .store import FileHashStore, HashStore, MemoryHashStore

__all__ = [
    "ArgsHashCache",
    "ArgsStatus",
    "FileHashStore",
    "HashCheck",
    "HashStore",
    "MemoryHashStore",
    "args_digest",
    "identity_key",
]

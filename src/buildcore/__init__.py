"""Public package entrypoint for the build action core."""

from .builders import AsyncProcessRunner, PathBuilderResolver, ProcessResult, StaticBuilderResolver
from .cache import ArgsHashCache, ArgsStatus, FileHashStore, HashCheck, MemoryHashStore
from .config import EngineConfig
from .engine import ExecutionEngine
from .errors import (
    ArgumentResolutionError,
    BuildCoreError,
    BuilderNotFound,
    CacheReadError,
    CacheWriteError,
    ErrorCode,
    ProcessExitError,
    ProcessSpawnError,
    ValidationError,
)
from .models import (
    BuilderKind,
    BuildOutcome,
    Context,
    ResolvedArgs,
    Resource,
    Target,
    TargetIdentity,
    Way,
    WayUnit,
    vanilla,
)
from .observability import StructuredLogger
from .render import ProgressInfo
from .resources import ResourceGuard, ResourceRegistry

__all__ = [
    "ArgsHashCache",
    "ArgsStatus",
    "ArgumentResolutionError",
    "AsyncProcessRunner",
    "BuildCoreError",
    "BuildOutcome",
    "BuilderKind",
    "BuilderNotFound",
    "CacheReadError",
    "CacheWriteError",
    "Context",
    "EngineConfig",
    "ErrorCode",
    "ExecutionEngine",
    "FileHashStore",
    "HashCheck",
    "MemoryHashStore",
    "PathBuilderResolver",
    "ProcessExitError",
    "ProcessResult",
    "ProcessSpawnError",
    "ProgressInfo",
    "ResolvedArgs",
    "Resource",
    "ResourceGuard",
    "ResourceRegistry",
    "StaticBuilderResolver",
    "StructuredLogger",
    "Target",
    "TargetIdentity",
    "ValidationError",
    "Way",
    "WayUnit",
    "vanilla",
]

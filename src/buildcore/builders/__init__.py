"""Builder location, process execution, and invocation protocols."""

from .base import DEFAULT_PROGRAMS, BuilderResolver, PathBuilderResolver, StaticBuilderResolver
from .dispatch import dispatch
from .files import write_file_changed
from .process import AsyncProcessRunner, ProcessResult, ProcessRunner

__all__ = [
    "DEFAULT_PROGRAMS",
    "AsyncProcessRunner",
    "BuilderResolver",
    "PathBuilderResolver",
    "ProcessResult",
    "ProcessRunner",
    "StaticBuilderResolver",
    "dispatch",
    "write_file_changed",
]

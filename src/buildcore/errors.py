"""Typed build-action error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    BUILDER_NOT_FOUND = "E_BUILDER_NOT_FOUND"
    ARGUMENT_RESOLUTION = "E_ARGUMENT_RESOLUTION"
    PROCESS_SPAWN = "E_PROCESS_SPAWN"
    PROCESS_EXIT = "E_PROCESS_EXIT"
    CACHE_READ = "E_CACHE_READ"
    CACHE_WRITE = "E_CACHE_WRITE"


class BuildCoreError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload

    def with_context(self, extra: Mapping[str, str]) -> BuildCoreError:
        """Merge *extra* into this error's context (existing keys win) and return it."""
        merged = dict(extra)
        merged.update(self.context)
        self.context = merged
        return self


class ValidationError(BuildCoreError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class BuilderNotFound(BuildCoreError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILDER_NOT_FOUND, hint=hint, context=context)


class ArgumentResolutionError(BuildCoreError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.ARGUMENT_RESOLUTION, hint=hint, context=context
        )


class ProcessSpawnError(BuildCoreError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PROCESS_SPAWN, hint=hint, context=context)


class ProcessExitError(BuildCoreError):
    """A builder process exited with a non-zero status."""

    returncode: int
    stderr: str

    def __init__(
        self,
        message: str,
        *,
        returncode: int,
        stderr: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"returncode": str(returncode), "stderr": stderr[:2000]}
        merged.update(context or {})
        super().__init__(message, code=ErrorCode.PROCESS_EXIT, hint=hint, context=merged)
        self.returncode = returncode
        self.stderr = stderr


class CacheReadError(BuildCoreError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CACHE_READ, hint=hint, context=context)


class CacheWriteError(BuildCoreError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CACHE_WRITE, hint=hint, context=context)


__all__ = [
    "ArgumentResolutionError",
    "BuildCoreError",
    "BuilderNotFound",
    "CacheReadError",
    "CacheWriteError",
    "ErrorCode",
    "ProcessExitError",
    "ProcessSpawnError",
    "ValidationError",
]

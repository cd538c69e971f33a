"""Execution engine: build one target with the right protocol and resources.

The scheduler drives the engine in two phases. :meth:`ExecutionEngine.is_stale`
answers whether a target's resolved command line changed since its last
successful build; :meth:`ExecutionEngine.run` performs the build. ``run`` may
be awaited concurrently for many targets. The engine keeps no per-build state
of its own; shared state lives in the resource registry and the hash cache.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from buildcore.builders.base import BuilderResolver
from buildcore.builders.dispatch import dispatch
from buildcore.builders.process import AsyncProcessRunner, ProcessRunner
from buildcore.cache import ArgsHashCache, MemoryHashStore
from buildcore.config import EngineConfig
from buildcore.errors import (
    ArgumentResolutionError,
    BuildCoreError,
    ProcessExitError,
    ProcessSpawnError,
)
from buildcore.models import BuilderKind, BuildOutcome, ResolvedArgs, ResourceRequestSet, Target
from buildcore.observability import StructuredLogger
from buildcore.render import ProgressInfo, render_target
from buildcore.resources import ResourceRegistry

ArgumentInterpreter = Callable[[Target], ResolvedArgs | tuple[Sequence[str], bool]]
ProgressSink = Callable[[str], None]


def print_progress(message: str) -> None:
    print(message, flush=True)


class ExecutionEngine:
    """Builds targets on behalf of a scheduler.

    The structured logger is the caller's: pass a bounded one, or drain it,
    when one engine serves a long build.
    """

    def __init__(
        self,
        *,
        resolver: BuilderResolver,
        arguments: ArgumentInterpreter,
        registry: ResourceRegistry | None = None,
        cache: ArgsHashCache | None = None,
        config: EngineConfig | None = None,
        runner: ProcessRunner | None = None,
        progress: ProgressSink | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.resolver = resolver
        self.arguments = arguments
        self.config = config or EngineConfig()
        self.logger = logger or StructuredLogger()
        self.registry = registry or ResourceRegistry()
        self.cache = cache or ArgsHashCache(MemoryHashStore(), logger=self.logger)
        self.runner = runner or AsyncProcessRunner(terminate_timeout=self.config.terminate_timeout)
        self.progress = progress or print_progress

    def resolve_args(self, target: Target) -> ResolvedArgs:
        try:
            resolved = self.arguments(target)
        except ArgumentResolutionError:
            raise
        except Exception as exc:
            raise ArgumentResolutionError(
                "Failed to resolve the builder argument list.",
                hint="Check the flag settings that apply to this target.",
                context={**target.describe(), "reason": str(exc)},
            ) from exc
        if isinstance(resolved, ResolvedArgs):
            return resolved
        args, verbose = resolved
        return ResolvedArgs(args=tuple(args), verbose=verbose)

    def is_stale(self, target: Target, args: Sequence[str] | None = None) -> bool:
        """Phase one: has the resolved argument list changed since the last success?"""
        if args is None:
            args = self.resolve_args(target).args
        return self.cache.is_stale(target, args)

    async def run(
        self,
        target: Target,
        resources: ResourceRequestSet | None = None,
    ) -> BuildOutcome:
        """Phase two: build *target*, holding *resources* around the invocation."""
        stale = False
        try:
            tool_path = self.resolver.resolve(target.builder)
            resolved = self.resolve_args(target)
            check = self.cache.check_and_record(target, resolved.args)
            stale = check.changed
            async with self.registry.hold(resources):
                self._announce(target, tool_path=str(tool_path), resolved=resolved)
                result = await dispatch(
                    target,
                    resolved.args,
                    tool_path,
                    runner=self.runner,
                    config=self.config,
                    logger=self.logger,
                    verbose=resolved.verbose,
                )
        except BuildCoreError as exc:
            return self._failure(target, exc, stale=stale)
        except OSError as exc:
            error = ProcessSpawnError(
                "I/O failure while building target.",
                context={"operation": "dispatch", "reason": str(exc)},
            )
            error.__cause__ = exc
            return self._failure(target, error, stale=stale)

        self.cache.record(check)
        return BuildOutcome(
            ok=True,
            target=target,
            stale=stale,
            stdout=result.stdout,
            stderr=result.stderr_text(),
        )

    async def run_tool(self, builder: BuilderKind, args: Sequence[str]) -> BuildOutcome:
        """Run *builder* outside of any target, e.g. to query a tool."""
        args = tuple(args)
        try:
            tool_path = self.resolver.resolve(builder)
            if self.config.progress_info is not ProgressInfo.SILENT:
                note = f" ({', '.join(args)})" if args else ""
                self.progress(f"| Run {builder.value}{note}")
            result = await self.runner.run(tool_path, args)
            if not result.ok:
                raise ProcessExitError(
                    f"{builder.value} exited with status {result.returncode}.",
                    returncode=result.returncode,
                    stderr=result.stderr_text(),
                    context={"builder": builder.value, "command": " ".join([str(tool_path), *args])},
                )
        except BuildCoreError as exc:
            self.logger.log(
                operation="run_tool",
                builder=builder.value,
                package=None,
                stage=None,
                way=None,
                message=str(exc),
                level="error",
                extra={"code": exc.code},
            )
            return BuildOutcome(ok=False, error=exc, stderr=_stderr_of(exc))
        return BuildOutcome(ok=True, stdout=result.stdout, stderr=result.stderr_text())

    def _announce(self, target: Target, *, tool_path: str, resolved: ResolvedArgs) -> None:
        if resolved.verbose:
            self.logger.log_target(
                target,
                operation="command",
                message=" ".join([tool_path, *resolved.args]),
            )
            return
        if self.config.progress_info is ProgressInfo.SILENT:
            return
        self.progress(render_target(target, self.config.progress_info))

    def _failure(self, target: Target, error: BuildCoreError, *, stale: bool) -> BuildOutcome:
        error.with_context(target.describe())
        self.logger.log_target(
            target,
            operation="dispatch",
            message=str(error),
            level="error",
            extra={"code": error.code},
        )
        return BuildOutcome(
            ok=False,
            target=target,
            stale=stale,
            error=error,
            stderr=_stderr_of(error),
            details=dict(error.context),
        )


def _stderr_of(error: BuildCoreError) -> str:
    return error.stderr if isinstance(error, ProcessExitError) else ""


__all__ = ["ArgumentInterpreter", "ExecutionEngine", "ProgressSink", "print_progress"]

"""Invocation protocols, one per builder kind.

Every :class:`~buildcore.models.BuilderKind` maps to exactly one protocol in
:func:`dispatch`. The match is exhaustive: a new kind without a case fails
type checking at ``assert_never``.
"""

from __future__ import annotations

import fnmatch
import tempfile
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import assert_never

from buildcore.builders.files import write_file_changed
from buildcore.builders.process import ProcessResult, ProcessRunner
from buildcore.config import EngineConfig
from buildcore.errors import ProcessExitError
from buildcore.models import BuilderKind, Target
from buildcore.observability import StructuredLogger


async def dispatch(
    target: Target,
    args: Sequence[str],
    tool_path: Path,
    *,
    runner: ProcessRunner,
    config: EngineConfig,
    logger: StructuredLogger | None = None,
    verbose: bool = False,
) -> ProcessResult:
    args = tuple(args)
    match target.builder:
        case BuilderKind.AR:
            output = target.single_output()
            if fnmatch.fnmatchcase(output, config.archive_pattern):
                return await archive_create(target, args, tool_path, runner=runner, config=config)
            return await archive_extract(target, tool_path, runner=runner, config=config)
        case BuilderKind.HS_CPP | BuilderKind.GEN_APPLY:
            return await capture_stdout(target, args, tool_path, runner=runner)
        case BuilderKind.GEN_PRIMOP_CODE:
            return await piped_codegen(target, args, tool_path, runner=runner)
        case (
            BuilderKind.GHC
            | BuilderKind.GHC_PKG
            | BuilderKind.CC
            | BuilderKind.LD
            | BuilderKind.HSC2HS
            | BuilderKind.ALEX
            | BuilderKind.HAPPY
            | BuilderKind.HADDOCK
        ):
            return await generic(
                target, args, tool_path, runner=runner, logger=logger, verbose=verbose
            )
        case _:
            assert_never(target.builder)


async def archive_create(
    target: Target,
    args: tuple[str, ...],
    tool_path: Path,
    *,
    runner: ProcessRunner,
    config: EngineConfig,
) -> ProcessResult:
    """Create or update an archive, splitting long object lists."""
    flag_args, file_args = split_archive_args(args, target.single_output())

    if config.ar_supports_at_file and file_args:
        with tempfile.TemporaryDirectory(prefix="buildcore-ar-") as temp_dir:
            response = Path(temp_dir) / "objects.rsp"
            response.write_text("\n".join(file_args) + "\n", encoding="utf-8")
            return await _run_checked(
                target, tool_path, [*flag_args, f"@{response}"], runner=runner
            )

    if not file_args or _command_length(tool_path, args) <= config.max_command_length:
        return await _run_checked(target, tool_path, args, runner=runner)

    budget = config.max_command_length - _command_length(tool_path, flag_args)
    chunks = list(chunks_of_size(budget, file_args))
    result = await _run_checked(target, tool_path, [*flag_args, *chunks[0]], runner=runner)
    for chunk in chunks[1:]:
        result = await _run_checked(target, tool_path, [*flag_args, *chunk], runner=runner)
    return result


def split_archive_args(args: Sequence[str], archive: str) -> tuple[list[str], list[str]]:
    """Split archiver arguments into leading flags and member files.

    Everything up to and including the archive name is a flag; the rest are
    members, whatever their suffix (``.o``, ``.p_o``, ``.dyn_o``, ...).
    Without the archive name only the leading mode argument is a flag.
    """
    args = list(args)
    split = args.index(archive) + 1 if archive in args else min(1, len(args))
    return args[:split], args[split:]


async def archive_extract(
    target: Target,
    tool_path: Path,
    *,
    runner: ProcessRunner,
    config: EngineConfig,
) -> ProcessResult:
    """Unpack the single input archive into the output directory."""
    output_dir = Path(target.single_output())
    # ar runs inside output_dir, so the archive path must not be relative
    archive = (config.top_directory / target.single_input()).absolute()
    output_dir.mkdir(parents=True, exist_ok=True)
    return await _run_checked(target, tool_path, ["x", str(archive)], runner=runner, cwd=output_dir)


async def capture_stdout(
    target: Target,
    args: tuple[str, ...],
    tool_path: Path,
    *,
    runner: ProcessRunner,
) -> ProcessResult:
    output = target.single_output()
    result = await _run_checked(target, tool_path, args, runner=runner)
    write_file_changed(output, result.stdout)
    return result


async def piped_codegen(
    target: Target,
    args: tuple[str, ...],
    tool_path: Path,
    *,
    runner: ProcessRunner,
) -> ProcessResult:
    source = Path(target.single_input())
    output = target.single_output()
    result = await _run_checked(target, tool_path, args, runner=runner, stdin=source.read_bytes())
    write_file_changed(output, result.stdout)
    return result


async def generic(
    target: Target,
    args: tuple[str, ...],
    tool_path: Path,
    *,
    runner: ProcessRunner,
    logger: StructuredLogger | None = None,
    verbose: bool = False,
) -> ProcessResult:
    """Run the tool as is; whatever it printed on success goes to the log."""
    result = await _run_checked(target, tool_path, args, runner=runner)
    if logger is None:
        return result
    if result.stdout:
        logger.log_target(
            target,
            operation="tool_output",
            message=result.stdout.decode("utf-8", errors="replace"),
            level="info" if verbose else "debug",
            extra={"stream": "stdout"},
        )
    if result.stderr:
        logger.log_target(
            target,
            operation="tool_output",
            message=result.stderr_text(),
            level="warning",
            extra={"stream": "stderr"},
        )
    return result


def chunks_of_size(limit: int, items: Sequence[str]) -> Iterator[list[str]]:
    """Split *items* so each chunk's joined length stays within *limit*.

    A single item longer than *limit* still gets a chunk of its own.
    """
    chunk: list[str] = []
    size = 0
    for item in items:
        cost = len(item) + 1
        if chunk and size + cost > limit:
            yield chunk
            chunk, size = [], 0
        chunk.append(item)
        size += cost
    if chunk:
        yield chunk


def _command_length(tool_path: Path, args: Sequence[str]) -> int:
    return len(str(tool_path)) + sum(len(arg) + 1 for arg in args)


async def _run_checked(
    target: Target,
    tool_path: Path,
    args: Sequence[str],
    *,
    runner: ProcessRunner,
    cwd: Path | None = None,
    stdin: bytes | None = None,
) -> ProcessResult:
    result = await runner.run(tool_path, args, cwd=cwd, stdin=stdin)
    if not result.ok:
        raise ProcessExitError(
            f"{target.builder.value} exited with status {result.returncode}.",
            returncode=result.returncode,
            stderr=result.stderr_text(),
            context={
                **target.describe(),
                "command": " ".join([str(tool_path), *args]),
                "cwd": str(cwd) if cwd is not None else "",
            },
        )
    return result

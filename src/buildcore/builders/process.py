"""Asynchronous child-process execution for builder invocations."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from buildcore.errors import ProcessSpawnError


@dataclass(frozen=True, slots=True)
class ProcessResult:
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class ProcessRunner(Protocol):
    async def run(
        self,
        executable: str | Path,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        stdin: bytes | None = None,
    ) -> ProcessResult:
        """Run *executable* with *args* and return its exit status and output."""


@dataclass(slots=True)
class AsyncProcessRunner:
    """Runs tools via :func:`asyncio.create_subprocess_exec`.

    Cancelling the awaiting task terminates the child (and kills it after
    ``terminate_timeout`` seconds) before the cancellation propagates.
    """

    terminate_timeout: float = 5.0

    async def run(
        self,
        executable: str | Path,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        stdin: bytes | None = None,
    ) -> ProcessResult:
        command = (str(executable), *args)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
            )
        except OSError as exc:
            raise ProcessSpawnError(
                f"Failed to start {command[0]}.",
                hint="Check that the builder exists and is executable.",
                context={
                    "operation": "spawn",
                    "command": " ".join(command),
                    "cwd": str(cwd) if cwd is not None else "",
                    "reason": str(exc),
                },
            ) from exc

        try:
            stdout, stderr = await process.communicate(stdin)
        except asyncio.CancelledError:
            await self._terminate(process)
            raise
        return ProcessResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout,
            stderr=stderr,
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), self.terminate_timeout)
        except TimeoutError:
            process.kill()
            await process.wait()

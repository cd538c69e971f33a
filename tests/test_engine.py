import asyncio
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from buildcore.builders.base import PathBuilderResolver, StaticBuilderResolver
from buildcore.builders.process import ProcessResult
from buildcore.cache import ArgsHashCache, FileHashStore, MemoryHashStore
from buildcore.config import EngineConfig
from buildcore.engine import ExecutionEngine
from buildcore.errors import (
    ArgumentResolutionError,
    BuilderNotFound,
    ProcessExitError,
    ProcessSpawnError,
)
from buildcore.models import BuilderKind, ResolvedArgs, Resource, Target, profiling
from buildcore.observability import StructuredLogger
from buildcore.render import ProgressInfo
from buildcore.resources import ResourceRegistry
from tests.fakes import FakeRunner, RecordedCall

GHC = Path("/opt/ghc/bin/ghc")
BASE_ARGS = ("-c", "-o", "Base.hi", "Base.o")


def _engine(
    runner: FakeRunner,
    *,
    args: Callable[[Target], ResolvedArgs] | None = None,
    registry: ResourceRegistry | None = None,
    cache: ArgsHashCache | None = None,
    config: EngineConfig | None = None,
    messages: list[str] | None = None,
    logger: StructuredLogger | None = None,
) -> ExecutionEngine:
    sink = messages if messages is not None else []
    return ExecutionEngine(
        resolver=StaticBuilderResolver(
            {BuilderKind.GHC: GHC, BuilderKind.LD: "/usr/bin/ld", BuilderKind.GEN_PRIMOP_CODE: "gpc"}
        ),
        arguments=args or (lambda target: ResolvedArgs(args=BASE_ARGS)),
        registry=registry,
        cache=cache,
        config=config,
        runner=runner,
        progress=sink.append,
        logger=logger,
    )


@pytest.mark.asyncio
async def test_scenario_a_success(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    make_target: Callable[..., Target],
) -> None:
    monkeypatch.chdir(tmp_path)

    def compile_interface(call: RecordedCall) -> ProcessResult:
        Path("Base.hi").write_text("interface\n", encoding="utf-8")
        return ProcessResult(returncode=0)

    runner = FakeRunner(respond=compile_interface)
    messages: list[str] = []
    registry = ResourceRegistry()
    engine = _engine(runner, registry=registry, messages=messages)
    target = make_target()

    outcome = await engine.run(target)

    assert outcome.ok
    assert outcome.stale is True
    [call] = runner.calls
    assert call.executable == str(GHC)
    assert call.args == BASE_ARGS
    assert (tmp_path / "Base.hi").exists()
    assert "Run Ghc (stage = 1, package = base)" in messages[0]
    assert not engine.is_stale(target)


@pytest.mark.asyncio
async def test_scenario_a_failure_carries_stderr(make_target: Callable[..., Target]) -> None:
    runner = FakeRunner(
        respond=lambda call: ProcessResult(returncode=1, stderr=b"Base.o: No such file\n")
    )
    logger = StructuredLogger()
    engine = _engine(runner, logger=logger)
    target = make_target()

    outcome = await engine.run(target)

    assert not outcome.ok
    assert isinstance(outcome.error, ProcessExitError)
    assert outcome.error.returncode == 1
    assert outcome.stderr == "Base.o: No such file\n"
    assert outcome.details["builder"] == "Ghc"
    assert outcome.details["package"] == "base"
    assert outcome.details["stage"] == "1"
    assert outcome.details["way"] == "v"
    assert engine.is_stale(target)
    [record] = logger.records_for_operation("dispatch")
    assert record["level"] == "error"
    assert record["extra"] == {"code": "E_PROCESS_EXIT"}


@pytest.mark.asyncio
async def test_scenario_b_serializes_linker_slot(make_target: Callable[..., Target]) -> None:
    slots = Resource("linker-slots", 1)
    registry = ResourceRegistry([slots])
    gate = asyncio.Event()
    runner = FakeRunner(gate=gate)
    engine = _engine(runner, registry=registry)
    first = make_target(BuilderKind.LD, package="ghc", outputs=("ghc-stage1",))
    second = make_target(BuilderKind.LD, package="ghc-pkg", outputs=("ghc-pkg",))

    tasks = [
        asyncio.create_task(engine.run(first, {slots: 1})),
        asyncio.create_task(engine.run(second, {slots: 1})),
    ]
    for _ in range(5):
        await asyncio.sleep(0)

    assert len(runner.calls) == 1
    assert registry.available(slots) == 0

    gate.set()
    outcomes = await asyncio.gather(*tasks)

    assert all(outcome.ok for outcome in outcomes)
    assert len(runner.calls) == 2
    assert runner.max_active == 1
    assert registry.available(slots) == 1


@pytest.mark.asyncio
async def test_flag_change_makes_target_stale(make_target: Callable[..., Target]) -> None:
    flags = {"extra": ()}

    def interpret(target: Target) -> ResolvedArgs:
        return ResolvedArgs(args=(*flags["extra"], *BASE_ARGS))

    engine = _engine(FakeRunner(), args=interpret)
    target = make_target()

    assert engine.is_stale(target)
    assert (await engine.run(target)).ok
    assert not engine.is_stale(target)
    assert not (await engine.run(target)).stale

    flags["extra"] = ("-O2",)
    assert engine.is_stale(target)
    assert engine.is_stale(target, BASE_ARGS) is False


@pytest.mark.asyncio
async def test_builder_not_found_fails_before_dispatch(make_target: Callable[..., Target]) -> None:
    runner = FakeRunner()
    engine = _engine(runner)

    outcome = await engine.run(make_target(BuilderKind.HADDOCK))

    assert not outcome.ok
    assert isinstance(outcome.error, BuilderNotFound)
    assert runner.calls == []


@pytest.mark.asyncio
async def test_argument_resolution_errors_are_wrapped(make_target: Callable[..., Target]) -> None:
    def broken(target: Target) -> ResolvedArgs:
        raise KeyError("ghc-options")

    runner = FakeRunner()
    outcome = await _engine(runner, args=broken).run(make_target(way=profiling))

    assert isinstance(outcome.error, ArgumentResolutionError)
    assert outcome.details["way"] == "p"
    assert "ghc-options" in outcome.details["reason"]
    assert runner.calls == []


@pytest.mark.asyncio
async def test_interpreter_may_return_plain_tuple(make_target: Callable[..., Target]) -> None:
    runner = FakeRunner()
    engine = _engine(runner, args=lambda target: (["-c", "x.c"], False))  # type: ignore[arg-type,return-value]

    assert (await engine.run(make_target())).ok
    assert runner.calls[0].args == ("-c", "x.c")


@pytest.mark.asyncio
async def test_verbose_targets_log_command_instead_of_progress(
    make_target: Callable[..., Target],
) -> None:
    messages: list[str] = []
    logger = StructuredLogger()
    engine = _engine(
        FakeRunner(),
        args=lambda target: ResolvedArgs(args=BASE_ARGS, verbose=True),
        messages=messages,
        logger=logger,
    )

    assert (await engine.run(make_target())).ok
    assert messages == []
    [record] = logger.records_for_operation("command")
    assert record["message"] == f"{GHC} -c -o Base.hi Base.o"


@pytest.mark.asyncio
async def test_warnings_from_a_successful_build_are_logged(
    make_target: Callable[..., Target],
) -> None:
    runner = FakeRunner(
        respond=lambda call: ProcessResult(returncode=0, stderr=b"Base.hs:7:5: warning: [-Wunused-matches]\n")
    )
    logger = StructuredLogger()
    engine = _engine(runner, logger=logger)

    outcome = await engine.run(make_target())

    assert outcome.ok
    assert "-Wunused-matches" in outcome.stderr
    [record] = logger.records_for_operation("tool_output")
    assert record["level"] == "warning"
    assert record["builder"] == "Ghc"
    assert "-Wunused-matches" in record["message"]


@pytest.mark.asyncio
async def test_silent_progress_emits_nothing(make_target: Callable[..., Target]) -> None:
    messages: list[str] = []
    engine = _engine(
        FakeRunner(),
        config=EngineConfig(progress_info=ProgressInfo.SILENT),
        messages=messages,
    )

    assert (await engine.run(make_target())).ok
    assert messages == []


@pytest.mark.asyncio
async def test_brief_progress_is_single_line(make_target: Callable[..., Target]) -> None:
    messages: list[str] = []
    engine = _engine(
        FakeRunner(),
        config=EngineConfig(progress_info=ProgressInfo.BRIEF),
        messages=messages,
    )

    await engine.run(make_target())

    assert messages == ["| Run Ghc (stage = 1, package = base): Base.o => Base.hi"]


@pytest.mark.asyncio
async def test_missing_codegen_input_is_an_io_failure(
    tmp_path: Path,
    make_target: Callable[..., Target],
) -> None:
    runner = FakeRunner()
    target = make_target(
        BuilderKind.GEN_PRIMOP_CODE,
        package="ghc-prim",
        inputs=(str(tmp_path / "missing.txt"),),
        outputs=(str(tmp_path / "out.hs"),),
    )

    outcome = await _engine(runner).run(target)

    assert isinstance(outcome.error, ProcessSpawnError)
    assert outcome.details["package"] == "ghc-prim"
    assert runner.calls == []


@pytest.mark.asyncio
async def test_cancellation_during_dispatch_releases_resources(
    make_target: Callable[..., Target],
) -> None:
    slots = Resource("linker-slots", 1)
    registry = ResourceRegistry([slots])
    runner = FakeRunner(gate=asyncio.Event())
    engine = _engine(runner, registry=registry)
    target = make_target(BuilderKind.LD, outputs=("ghc-stage1",))

    task = asyncio.create_task(engine.run(target, {slots: 1}))
    while not runner.calls:
        await asyncio.sleep(0)
    assert registry.available(slots) == 0

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert registry.available(slots) == 1
    assert engine.is_stale(target)


@pytest.mark.asyncio
async def test_run_tool_reports_builder_invocation() -> None:
    messages: list[str] = []
    runner = FakeRunner(respond=lambda call: ProcessResult(returncode=0, stdout=b"9.8.1\n"))
    engine = _engine(runner, messages=messages)

    outcome = await engine.run_tool(BuilderKind.GHC, ["--numeric-version"])

    assert outcome.ok
    assert outcome.stdout == b"9.8.1\n"
    assert messages == ["| Run Ghc (--numeric-version)"]


@pytest.mark.asyncio
async def test_run_tool_failure_is_reported() -> None:
    runner = FakeRunner(respond=lambda call: ProcessResult(returncode=2, stderr=b"bad flag"))
    outcome = await _engine(runner).run_tool(BuilderKind.GHC, ["--bogus"])

    assert not outcome.ok
    assert outcome.stderr == "bad flag"


@pytest.mark.asyncio
async def test_end_to_end_with_real_process(tmp_path: Path, make_target: Callable[..., Target]) -> None:
    output = tmp_path / "Base.hi"
    script = f"import pathlib; pathlib.Path({str(output)!r}).write_text('hi')"
    engine = ExecutionEngine(
        resolver=StaticBuilderResolver({BuilderKind.GHC: sys.executable}),
        arguments=lambda target: ResolvedArgs(args=("-c", script)),
        cache=ArgsHashCache(FileHashStore(tmp_path / "hashes")),
        progress=lambda message: None,
    )
    target = make_target(outputs=(str(output),))

    outcome = await engine.run(target)

    assert outcome.ok
    assert output.read_text() == "hi"
    reopened = ArgsHashCache(FileHashStore(tmp_path / "hashes"))
    assert not reopened.is_stale(target, ("-c", script))


def test_path_resolver_reports_missing_program(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("buildcore.builders.base.shutil.which", lambda _: None)

    with pytest.raises(BuilderNotFound) as excinfo:
        PathBuilderResolver().resolve(BuilderKind.HAPPY)

    assert excinfo.value.context["program"] == "happy"


def test_path_resolver_honours_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("buildcore.builders.base.shutil.which", lambda name: f"/usr/bin/{name}")

    resolver = PathBuilderResolver({BuilderKind.CC: "clang"})

    assert resolver.resolve(BuilderKind.CC) == Path("/usr/bin/clang")
    assert resolver.resolve(BuilderKind.AR) == Path("/usr/bin/ar")


def test_engine_defaults_use_memory_cache() -> None:
    engine = ExecutionEngine(resolver=StaticBuilderResolver(), arguments=lambda target: ResolvedArgs())

    assert isinstance(engine.cache.store, MemoryHashStore)
    assert engine.cache.logger is engine.logger

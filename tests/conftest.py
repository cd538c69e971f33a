"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from buildcore.models import BuilderKind, Context, Target, Way, vanilla
from tests.fakes import FakeRunner


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_target() -> Callable[..., Target]:
    def _make(
        builder: BuilderKind = BuilderKind.GHC,
        *,
        stage: int = 1,
        package: str = "base",
        way: Way = vanilla,
        inputs: Sequence[str] = ("Base.o",),
        outputs: Sequence[str] = ("Base.hi",),
    ) -> Target:
        return Target(
            builder=builder,
            context=Context(stage=stage, package=package, way=way),
            inputs=tuple(inputs),
            outputs=tuple(outputs),
        )

    return _make

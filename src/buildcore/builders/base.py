"""Builder location: map a builder kind to a concrete executable."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from buildcore.errors import BuilderNotFound
from buildcore.models import BuilderKind

DEFAULT_PROGRAMS: dict[BuilderKind, str] = {
    BuilderKind.AR: "ar",
    BuilderKind.HS_CPP: "cpp",
    BuilderKind.GEN_APPLY: "genapply",
    BuilderKind.GEN_PRIMOP_CODE: "genprimopcode",
    BuilderKind.GHC: "ghc",
    BuilderKind.GHC_PKG: "ghc-pkg",
    BuilderKind.CC: "cc",
    BuilderKind.LD: "ld",
    BuilderKind.HSC2HS: "hsc2hs",
    BuilderKind.ALEX: "alex",
    BuilderKind.HAPPY: "happy",
    BuilderKind.HADDOCK: "haddock",
}


class BuilderResolver(Protocol):
    def resolve(self, builder: BuilderKind) -> Path:
        """Return the executable for *builder* or raise ``BuilderNotFound``."""


@dataclass(frozen=True, slots=True)
class StaticBuilderResolver:
    paths: Mapping[BuilderKind, Path | str] = field(default_factory=dict)

    def resolve(self, builder: BuilderKind) -> Path:
        path = self.paths.get(builder)
        if path is None or str(path) == "":
            raise BuilderNotFound(
                f"No path configured for builder {builder.value}.",
                hint="Add the builder to the configured tool paths.",
                context={"builder": builder.value},
            )
        return Path(path)


@dataclass(frozen=True, slots=True)
class PathBuilderResolver:
    """Looks builders up on ``PATH``; *overrides* may name other programs."""

    overrides: Mapping[BuilderKind, str] = field(default_factory=dict)

    def resolve(self, builder: BuilderKind) -> Path:
        program = self.overrides.get(builder, DEFAULT_PROGRAMS[builder])
        found = shutil.which(program)
        if found is None:
            raise BuilderNotFound(
                f"Builder {builder.value} requires `{program}` in PATH.",
                hint=f"Install {program} or configure an explicit path.",
                context={"builder": builder.value, "program": program},
            )
        return Path(found)

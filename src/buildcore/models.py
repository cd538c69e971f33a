"""Core typed dataclasses describing one build action."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from buildcore.errors import ArgumentResolutionError, ValidationError


class WayUnit(StrEnum):
    """One axis of a build variant, rendered with its short tag."""

    THREADED = "thr"
    DEBUG = "debug"
    PROFILING = "p"
    LOGGING = "l"
    DYNAMIC = "dyn"


_UNIT_ORDER = {unit: index for index, unit in enumerate(WayUnit)}


@dataclass(frozen=True, slots=True)
class Way:
    """A build variant: a set of way units. The empty set is ``vanilla``."""

    units: frozenset[WayUnit] = frozenset()

    @classmethod
    def of(cls, *units: WayUnit) -> Way:
        return cls(units=frozenset(units))

    @classmethod
    def parse(cls, tag: str) -> Way:
        """Parse a rendered way tag such as ``v`` or ``thr_p``."""
        if tag in ("", "v"):
            return vanilla
        units: list[WayUnit] = []
        for part in tag.split("_"):
            try:
                units.append(WayUnit(part))
            except ValueError as exc:
                raise ValidationError(
                    f"Unknown way unit {part!r}.",
                    hint=f"Known units: {', '.join(unit.value for unit in WayUnit)}.",
                    context={"way": tag},
                ) from exc
        return cls(units=frozenset(units))

    @property
    def is_vanilla(self) -> bool:
        return not self.units

    def __str__(self) -> str:
        if not self.units:
            return "v"
        return "_".join(unit.value for unit in sorted(self.units, key=_UNIT_ORDER.__getitem__))


vanilla = Way()
profiling = Way.of(WayUnit.PROFILING)
dynamic = Way.of(WayUnit.DYNAMIC)
threaded = Way.of(WayUnit.THREADED)


@dataclass(frozen=True, slots=True)
class Context:
    """Build-variant coordinates distinguishing otherwise identical targets."""

    stage: int
    package: str
    way: Way = vanilla

    def __post_init__(self) -> None:
        if self.stage < 0:
            raise ValidationError(
                "Context stage must be a non-negative ordinal.",
                context={"stage": str(self.stage), "package": self.package},
            )
        if not self.package:
            raise ValidationError("Context package must not be empty.")


class BuilderKind(StrEnum):
    """Closed set of external tools the core knows how to invoke."""

    AR = "Ar"
    HS_CPP = "HsCpp"
    GEN_APPLY = "GenApply"
    GEN_PRIMOP_CODE = "GenPrimopCode"
    GHC = "Ghc"
    GHC_PKG = "GhcPkg"
    CC = "Cc"
    LD = "Ld"
    HSC2HS = "Hsc2Hs"
    ALEX = "Alex"
    HAPPY = "Happy"
    HADDOCK = "Haddock"


@dataclass(frozen=True, slots=True)
class TargetIdentity:
    """The part of a target that keys caching and resource bookkeeping."""

    builder: BuilderKind
    context: Context
    outputs: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Target:
    builder: BuilderKind
    context: Context
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(str(path) for path in self.inputs))
        object.__setattr__(self, "outputs", tuple(str(path) for path in self.outputs))

    @property
    def identity(self) -> TargetIdentity:
        return TargetIdentity(builder=self.builder, context=self.context, outputs=self.outputs)

    def single_input(self) -> str:
        return _single(self, self.inputs, "input")

    def single_output(self) -> str:
        return _single(self, self.outputs, "output")

    def describe(self) -> dict[str, str]:
        """Context fields used in diagnostics."""
        return {
            "builder": self.builder.value,
            "package": self.context.package,
            "stage": str(self.context.stage),
            "way": str(self.context.way),
        }


def _single(target: Target, paths: tuple[str, ...], kind: str) -> str:
    if len(paths) != 1:
        raise ArgumentResolutionError(
            f"Exactly one {kind} file expected, got {len(paths)}.",
            context={**target.describe(), f"{kind}s": " ".join(paths)},
        )
    return paths[0]


@dataclass(frozen=True, slots=True)
class Resource:
    """A named capacity-bounded token gating access to a scarce facility."""

    name: str
    capacity: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("Resource name must not be empty.")
        if self.capacity <= 0:
            raise ValidationError(
                "Resource capacity must be a positive integer.",
                context={"resource": self.name, "capacity": str(self.capacity)},
            )


ResourceRequestSet = Mapping[Resource, int]


@dataclass(frozen=True, slots=True)
class ResolvedArgs:
    """Flattened argument list and verbosity flag computed for a target."""

    args: tuple[str, ...] = ()
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(slots=True)
class BuildOutcome:
    """Result of one engine invocation, reported back to the scheduler."""

    ok: bool
    target: Target | None = None
    stale: bool = False
    error: Exception | None = None
    stdout: bytes = b""
    stderr: str = ""
    details: dict[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok


def normalize_requests(
    requests: ResourceRequestSet | Iterable[tuple[Resource, int]] | None,
) -> dict[Resource, int]:
    """Validate a resource request set and return it as a plain dict."""
    if requests is None:
        return {}
    items = requests.items() if isinstance(requests, Mapping) else requests
    normalized: dict[Resource, int] = {}
    for resource, units in items:
        if units <= 0:
            raise ValidationError(
                "Requested resource units must be positive.",
                context={"resource": resource.name, "units": str(units)},
            )
        normalized[resource] = normalized.get(resource, 0) + units
    for resource, units in normalized.items():
        if units > resource.capacity:
            raise ValidationError(
                "Requested resource units exceed the resource capacity.",
                hint="The request could never be satisfied.",
                context={
                    "resource": resource.name,
                    "units": str(units),
                    "capacity": str(resource.capacity),
                },
            )
    return normalized

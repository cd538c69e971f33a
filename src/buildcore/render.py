"""Progress message rendering for build actions."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum

from buildcore.errors import ValidationError
from buildcore.models import Target

MINIMUM_BOX_WIDTH = 32


class ProgressInfo(StrEnum):
    """How much progress information to print per action."""

    NORMAL = "normal"
    BRIEF = "brief"
    DECORATIVE = "decorative"
    SILENT = "none"


_PROGRESS_ALIASES = {
    "normal": ProgressInfo.NORMAL,
    "brief": ProgressInfo.BRIEF,
    "decorative": ProgressInfo.DECORATIVE,
    "unicorn": ProgressInfo.DECORATIVE,
    "none": ProgressInfo.SILENT,
    "silent": ProgressInfo.SILENT,
}


def parse_progress_info(value: str) -> ProgressInfo:
    """Parse a ``--progress-info`` style command-line value."""
    try:
        return _PROGRESS_ALIASES[value.strip().lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown progress info level {value!r}.",
            hint="Use one of: normal, brief, unicorn, none.",
            context={"option": "progress_info"},
        ) from None


def render_box(lines: Sequence[str]) -> str:
    """Render *lines* in an ASCII box at least ``MINIMUM_BOX_WIDTH`` wide.

    >>> print(render_box(["lorem", "ipsum"]))
    /----------------------------\\
    | lorem                      |
    | ipsum                      |
    \\----------------------------/
    """
    # 4 = leading "| " and trailing " |"
    width = max(MINIMUM_BOX_WIDTH - 4, max((len(line) for line in lines), default=0))
    dashes = "-" * (width + 2)
    rows = [f"/{dashes}\\"]
    rows.extend(f"| {line.ljust(width)} |" for line in lines)
    rows.append(f"\\{dashes}/")
    return "\n".join(rows)


_BANNER = (
    "      _____        ",
    "     |     |==()   ",
    "     |_____|       ",
    "       | |         ",
    "       | |  done!  ",
    "      _|_|_        ",
)
_BANNER_PAD = " " * len(_BANNER[0])


def render_decorated(lines: Sequence[str]) -> str:
    """Render the box for *lines* next to a small hammer banner."""
    box = render_box(lines).splitlines()
    height = max(len(_BANNER), len(box))
    banner = list(_BANNER) + [_BANNER_PAD] * (height - len(_BANNER))
    box = box + [""] * (height - len(box))
    return "\n".join((left + right).rstrip() for left, right in zip(banner, box))


def render_action(what: str, source: str, output: str, info: ProgressInfo) -> str:
    lines = [what, f"     input: {source}", f" => output: {output}"]
    match info:
        case ProgressInfo.NORMAL:
            return render_box(lines)
        case ProgressInfo.BRIEF:
            return f"| {what}: {source} => {output}"
        case ProgressInfo.DECORATIVE:
            return render_decorated(lines)
        case ProgressInfo.SILENT:
            return ""


def summarize_paths(paths: Sequence[str]) -> str:
    if not paths:
        return "none"
    if len(paths) == 1:
        return paths[0]
    return f"{paths[0]} (and {len(paths) - 1} more)"


def describe_target(target: Target) -> str:
    context = target.context
    info = f"stage = {context.stage}, package = {context.package}"
    if not context.way.is_vanilla:
        info += f", way = {context.way}"
    return f"Run {target.builder.value} ({info})"


def render_target(target: Target, info: ProgressInfo) -> str:
    return render_action(
        describe_target(target),
        summarize_paths(target.inputs),
        summarize_paths(target.outputs),
        info,
    )


def render_library(name: str, library: str, synopsis: str) -> str:
    return render_box(
        [
            f"Successfully built library {name}",
            f"Library: {library}",
            f"Library synopsis: {synopsis}.",
        ]
    )


def render_program(name: str, binary: str, synopsis: str) -> str:
    return render_box(
        [
            f"Successfully built program {name}",
            f"Executable: {binary}",
            f"Program synopsis: {synopsis}.",
        ]
    )

"""Engine configuration threaded explicitly into the execution engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from buildcore.errors import ValidationError
from buildcore.render import ProgressInfo, parse_progress_info


@dataclass(frozen=True, slots=True)
class EngineConfig:
    progress_info: ProgressInfo = ProgressInfo.NORMAL
    top_directory: Path = field(default_factory=Path)
    archive_pattern: str = "*.a"
    ar_supports_at_file: bool = False
    max_command_length: int = 32768
    terminate_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.max_command_length <= 0:
            raise ValidationError(
                "max_command_length must be positive.",
                context={"max_command_length": str(self.max_command_length)},
            )
        if self.terminate_timeout < 0:
            raise ValidationError(
                "terminate_timeout must not be negative.",
                context={"terminate_timeout": str(self.terminate_timeout)},
            )

    @classmethod
    def from_flags(cls, flags: Mapping[str, str]) -> EngineConfig:
        """Build a config from command-line style ``name -> value`` flags."""
        config = cls()
        if "progress-info" in flags:
            config = replace(config, progress_info=parse_progress_info(flags["progress-info"]))
        if "top" in flags:
            config = replace(config, top_directory=Path(flags["top"]))
        if "ar-supports-at-file" in flags:
            config = replace(
                config,
                ar_supports_at_file=flags["ar-supports-at-file"].strip().lower()
                in ("1", "yes", "true"),
            )
        return config

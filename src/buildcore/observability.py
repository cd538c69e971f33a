"""Structured logging and observability helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from buildcore.errors import ValidationError
from buildcore.models import Target


@dataclass(slots=True)
class StructuredLogger:
    """In-memory structured log records.

    The logger belongs to whoever creates it and lives as long as they keep
    it. A long-lived engine should either be given a bounded logger or have
    its records drained through :meth:`drain`. With ``max_records`` set, the
    oldest records are dropped once the limit is reached.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    max_records: int | None = None
    dropped: int = 0

    def __post_init__(self) -> None:
        if self.max_records is not None and self.max_records < 1:
            raise ValidationError(
                "max_records must be positive.",
                context={"max_records": str(self.max_records)},
            )

    def log(
        self,
        *,
        operation: str,
        builder: str | None,
        package: str | None,
        stage: int | None,
        way: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "builder": builder,
            "package": package,
            "stage": stage,
            "way": way,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.max_records is not None and len(self.records) > self.max_records:
            excess = len(self.records) - self.max_records
            del self.records[:excess]
            self.dropped += excess

    def log_target(
        self,
        target: Target | None,
        *,
        operation: str,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        if target is None:
            self.log(
                operation=operation,
                builder=None,
                package=None,
                stage=None,
                way=None,
                message=message,
                level=level,
                extra=extra,
            )
            return
        self.log(
            operation=operation,
            builder=target.builder.value,
            package=target.context.package,
            stage=target.context.stage,
            way=str(target.context.way),
            message=message,
            level=level,
            extra=extra,
        )

    def records_for_package(self, package: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("package") == package]

    def records_for_operation(self, operation: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("operation") == operation]

    def drain(self) -> list[dict[str, Any]]:
        """Return the buffered records and start over with an empty buffer."""
        drained, self.records = self.records, []
        return drained

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path

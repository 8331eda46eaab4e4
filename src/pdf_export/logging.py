from __future__ import annotations

import csv
import json
import time
from dataclasses import asdict, dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any

from .models import ConversionResult, Success
from .utils import atomic_write


SUMMARY_HEADER = [
    "batch_id",
    "timestamp",
    "total",
    "successful",
    "failed",
    "degraded",
    "duration_s",
    "warnings",
]


@dataclass(slots=True)
class RunLogEntry:
    source: str
    document_type: str
    status: str
    output_path: str | None
    size_bytes: int
    duration_ms: float
    degraded: bool
    warnings: list[str]
    stage: str | None
    error_code: str | None
    reason: str | None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_result(cls, result: ConversionResult) -> "RunLogEntry":
        document = result.document
        outcome = result.outcome
        if isinstance(outcome, Success):
            return cls(
                source=document.name,
                document_type=document.document_type.name,
                status="degraded" if outcome.degraded else "success",
                output_path=str(outcome.output_path),
                size_bytes=outcome.byte_size,
                duration_ms=round(outcome.duration_s * 1000, 1),
                degraded=outcome.degraded,
                warnings=list(result.warnings),
                stage=None,
                error_code=None,
                reason=None,
            )
        return cls(
            source=document.name,
            document_type=document.document_type.name,
            status="failure",
            output_path=None,
            size_bytes=0,
            duration_ms=0.0,
            degraded=False,
            warnings=list(result.warnings),
            stage=outcome.stage,
            error_code=outcome.code,
            reason=outcome.reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


@dataclass(slots=True)
class BatchStats:
    """Batch counters. Only the orchestrator's aggregation step mutates them."""

    start_time: float = field(default_factory=time.time)
    total: int = 0
    successful: int = 0
    failed: int = 0
    degraded: int = 0
    warnings: dict[str, int] = field(default_factory=dict)
    end_time: float | None = None

    def record(self, result: ConversionResult) -> None:
        if isinstance(result.outcome, Success):
            self.successful += 1
            if result.outcome.degraded:
                self.degraded += 1
        else:
            self.failed += 1
        for warning in result.warnings:
            self.warnings[warning] = self.warnings.get(warning, 0) + 1

    def finish(self) -> None:
        self.end_time = time.time()

    @property
    def completed(self) -> int:
        return self.successful + self.failed

    @property
    def duration_s(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return max(0.0, end - self.start_time)

    def as_row(self, batch_id: str) -> list[str]:
        warning_json = json.dumps(self.warnings, sort_keys=True)
        return [
            batch_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.start_time)),
            str(self.total),
            str(self.successful),
            str(self.failed),
            str(self.degraded),
            f"{self.duration_s:.2f}",
            warning_json,
        ]


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())


def append_batch_summary(path: Path, stats: BatchStats, batch_id: str) -> None:
    header = SUMMARY_HEADER
    rows: list[list[str]] = []
    if path.exists():
        with path.open("r", encoding="utf-8", newline="") as handle:
            existing = list(csv.reader(handle))
        if existing:
            header = existing[0]
            rows = existing[1:]
    rows.append(stats.as_row(batch_id))
    write_summary_csv(path, header, rows)

"""Result types produced by the export pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .discovery import Document

if TYPE_CHECKING:
    from .logging import BatchStats
    from .publish import PublishReport


@dataclass(frozen=True, slots=True)
class Success:
    """A written PDF. ``degraded`` marks captures taken after a wait timed out."""

    output_path: Path
    byte_size: int
    duration_s: float
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class Failure:
    stage: str
    reason: str
    code: str = "CONVERSION"


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Outcome of one document's conversion attempt."""

    document: Document
    outcome: Success | Failure
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Success)


@dataclass(slots=True)
class BatchResult:
    """Aggregate results for one export run."""

    results: list[ConversionResult]
    stats: BatchStats
    publish: PublishReport | None = None

    @property
    def failures(self) -> list[ConversionResult]:
        return [result for result in self.results if not result.ok]

    @property
    def successes(self) -> list[ConversionResult]:
        return [result for result in self.results if result.ok]


__all__ = ["BatchResult", "ConversionResult", "Failure", "Success"]

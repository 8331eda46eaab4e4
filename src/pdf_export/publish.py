"""Copy finished PDFs to where the content site picks them up."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .models import ConversionResult, Success
from .utils import atomic_copy

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PublishReport:
    directory: Path
    copied: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


class OutputPublisher:
    def __init__(
        self,
        output_root: Path,
        directory: Path,
        *,
        copy: Callable[[Path, Path], None] = atomic_copy,
    ) -> None:
        self._output_root = output_root
        self._directory = directory
        self._copy = copy

    @property
    def directory(self) -> Path:
        return self._directory

    def destination_for(self, artifact: Path) -> Path:
        try:
            relative = artifact.resolve().relative_to(self._output_root.resolve())
        except ValueError:
            relative = Path(artifact.name)
        return self._directory / relative

    def publish(self, results: Iterable[ConversionResult]) -> PublishReport:
        report = PublishReport(directory=self._directory)
        if not self._directory.is_dir():
            report.skipped_reason = f"Publish directory {self._directory} not found"
            LOGGER.warning("%s, skipping PDF copy", report.skipped_reason)
            return report
        for result in results:
            if not isinstance(result.outcome, Success):
                continue
            source = result.outcome.output_path
            destination = self.destination_for(source)
            try:
                self._copy(source, destination)
            except OSError as exc:
                LOGGER.error("Failed to copy %s: %s", source.name, exc)
                report.failed.append((source, str(exc)))
                continue
            LOGGER.info("Copied %s to %s", source.name, destination)
            report.copied.append(destination)
        return report


__all__ = ["OutputPublisher", "PublishReport"]

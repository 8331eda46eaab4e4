from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from .capture import CaptureEngine
from .config import ExportConfig, PageRules, resolve_page_rules, resolve_qr_config
from .discovery import Document, discover_documents, make_document
from .engine import RenderEngine, RenderSession, create_engine
from .errors import ConversionError, ExportError, NavigationError, OutputDirectoryError, SessionError
from .logging import BatchStats, RunLogEntry, RunLogger, append_batch_summary
from .models import BatchResult, ConversionResult, Failure, Success
from .publish import OutputPublisher, PublishReport
from .qr import QRAnnotator
from .readiness import RenderReadinessGate
from .styling import StyleInjector, StyleReport
from .utils import format_bytes, format_duration

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, ConversionResult], None]


def generate_batch_id(prefix: str = "batch") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def chunked(documents: Sequence[Document], size: int) -> list[Sequence[Document]]:
    return [documents[index : index + size] for index in range(0, len(documents), size)]


def step_timeout(rules: PageRules) -> float | None:
    """Deadline in seconds for a single page command, ``None`` when unbounded."""

    return rules.timeout_ms / 1000 if rules.timeout_ms else None


class ExportService:
    """Convert a tree of built HTML pages into PDFs.

    One engine is started per batch and every document gets its own
    session. Per-document errors become :class:`Failure` results; only
    initialization errors (output directory, engine launch) propagate.
    """

    def __init__(
        self,
        config: ExportConfig,
        *,
        input_dir: Path,
        output_dir: Path,
        engine_factory: Callable[[], RenderEngine] = create_engine,
        publish_dir: Path | None = None,
        publish: bool = True,
        styler: StyleInjector | None = None,
        annotator: QRAnnotator | None = None,
        gate: RenderReadinessGate | None = None,
    ) -> None:
        self._config = config
        self._input_dir = input_dir
        self._output_dir = output_dir
        self._engine_factory = engine_factory
        self._publish_enabled = publish and config.publish.enabled
        self._publish_dir = publish_dir or config.publish.directory or input_dir.resolve().parent / "src"
        self._gate = gate or RenderReadinessGate(config.wait)
        self._styler = styler or StyleInjector(
            language=config.language,
            strip_selectors=config.strip_selectors,
            compact_table_max_rows=config.compact_table_max_rows,
        )
        self._annotator = annotator or QRAnnotator()
        self._capture = CaptureEngine(output_dir)

    @property
    def config(self) -> ExportConfig:
        return self._config

    # Entry points

    def run(self, *, parallelism: int = 1, progress: ProgressCallback | None = None) -> BatchResult:
        return asyncio.run(self.run_async(parallelism=parallelism, progress=progress))

    def convert_single(self, path: Path, *, progress: ProgressCallback | None = None) -> BatchResult:
        return asyncio.run(self.convert_single_async(path, progress=progress))

    async def run_async(self, *, parallelism: int = 1, progress: ProgressCallback | None = None) -> BatchResult:
        self._prepare_output_dir()
        LOGGER.info("Input directory: %s", self._input_dir)
        LOGGER.info("Output directory: %s", self._output_dir)
        stats = BatchStats()
        documents = discover_documents(self._input_dir, self._config.exclude_files, self._config.document_types)
        stats.total = len(documents)
        if not documents:
            LOGGER.warning("No HTML files found to convert")
            stats.finish()
            return BatchResult(results=[], stats=stats)
        results = await self._convert_all(documents, max(1, parallelism), stats, progress)
        return self._finish(results, stats, publish=True)

    async def convert_single_async(self, path: Path, *, progress: ProgressCallback | None = None) -> BatchResult:
        self._prepare_output_dir()
        stats = BatchStats(total=1)
        document = make_document(path, self._input_dir, self._config.document_types)
        if not document.source_path.is_file():
            result = ConversionResult(
                document=document,
                outcome=Failure(stage="discover", reason=f"Source file does not exist: {path}", code="NOT_FOUND"),
            )
            self._record(result, stats, [], progress)
            return self._finish([result], stats, publish=False)
        results = await self._convert_all([document], 1, stats, progress)
        return self._finish(results, stats, publish=False)

    # Orchestration

    def _prepare_output_dir(self) -> None:
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(f"Cannot create output directory {self._output_dir}: {exc}") from exc

    async def _convert_all(
        self,
        documents: Sequence[Document],
        parallelism: int,
        stats: BatchStats,
        progress: ProgressCallback | None,
    ) -> list[ConversionResult]:
        results: list[ConversionResult] = []
        engine = self._engine_factory()
        await engine.start()
        try:
            if parallelism == 1:
                for document in documents:
                    self._record(await self._convert(engine, document), stats, results, progress)
            else:
                for chunk in chunked(documents, parallelism):
                    tasks = [asyncio.ensure_future(self._convert(engine, document)) for document in chunk]
                    try:
                        for finished in asyncio.as_completed(tasks):
                            self._record(await finished, stats, results, progress)
                    finally:
                        pending = [task for task in tasks if not task.done()]
                        for task in pending:
                            task.cancel()
                        if pending:
                            await asyncio.gather(*pending, return_exceptions=True)
        finally:
            await engine.stop()
        return results

    def _record(
        self,
        result: ConversionResult,
        stats: BatchStats,
        results: list[ConversionResult],
        progress: ProgressCallback | None,
    ) -> None:
        results.append(result)
        stats.record(result)
        run_logger = self._run_logger()
        if run_logger is not None:
            try:
                run_logger.append(RunLogEntry.from_result(result))
            except OSError as exc:
                LOGGER.warning("Could not write run log %s: %s", run_logger.path, exc)
        if progress is not None:
            progress(stats.completed, stats.total, result)

    def _run_logger(self) -> RunLogger | None:
        if not self._config.run_log:
            return None
        return RunLogger(self._output_dir / self._config.run_log)

    def _finish(self, results: list[ConversionResult], stats: BatchStats, *, publish: bool) -> BatchResult:
        stats.finish()
        ordered = sorted(results, key=lambda result: result.document.relative_path.as_posix())
        if self._config.summary_csv:
            summary_path = self._output_dir / self._config.summary_csv
            try:
                append_batch_summary(summary_path, stats, generate_batch_id())
            except OSError as exc:
                LOGGER.warning("Could not write batch summary %s: %s", summary_path, exc)
        LOGGER.info(
            "Conversion complete: %d succeeded, %d failed in %s",
            stats.successful,
            stats.failed,
            format_duration(stats.duration_s),
        )
        report: PublishReport | None = None
        if publish and self._publish_enabled and stats.successful > 0:
            report = OutputPublisher(self._output_dir, self._publish_dir).publish(ordered)
        return BatchResult(results=ordered, stats=stats, publish=report)

    # One document

    async def _convert(self, engine: RenderEngine, document: Document) -> ConversionResult:
        start = time.perf_counter()
        stage = "configure"
        warnings: list[str] = []
        LOGGER.info("Converting: %s", document.name)
        try:
            rules = resolve_page_rules(self._config, document.document_type)
            qr = resolve_qr_config(self._config, document.document_type)
            stage = "open"
            async with engine.session(self._config.viewport) as session:
                stage = "navigate"
                await self._navigate(session, document, rules)

                stage = "readiness"
                readiness = await self._gate.wait_until_ready(session)
                degraded = readiness.degraded
                if readiness.reason:
                    warnings.append(readiness.reason)
                svg_count = await self._gate.count_visualizations(session, timeout_s=step_timeout(rules))
                if svg_count:
                    LOGGER.info("Found %d SVG visualization(s) in %s", svg_count, document.name)

                stage = "style"
                report = await self._style(session, rules)
                if report.tables:
                    LOGGER.info(
                        "Marked %d of %d table(s) as compact in %s",
                        report.compact_tables,
                        len(report.tables),
                        document.name,
                    )

                stage = "annotate"
                annotation = await self._annotator.annotate(session, document, qr, timeout_s=step_timeout(rules))
                if annotation.reason:
                    warnings.append(f"QR code skipped: {annotation.reason}")

                stage = "settle"
                for outcome in await self._gate.wait_for_optional(session):
                    if outcome.degraded:
                        degraded = True
                        if outcome.reason:
                            warnings.append(outcome.reason)

                stage = "capture"
                captured = await self._capture.capture(session, document, rules)
        except ExportError as exc:
            LOGGER.error("Failed to convert %s during %s: %s", document.name, stage, exc)
            return self._failure(document, stage, exc.code, str(exc), warnings)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unexpected error converting %s during %s", document.name, stage)
            return self._failure(document, stage, "UNEXPECTED", f"{type(exc).__name__}: {exc}", warnings)

        duration = time.perf_counter() - start
        LOGGER.info(
            "Generated: %s (%s) in %s%s",
            captured.output_path,
            format_bytes(captured.byte_size),
            format_duration(duration),
            " [degraded]" if degraded else "",
        )
        return ConversionResult(
            document=document,
            outcome=Success(
                output_path=captured.output_path,
                byte_size=captured.byte_size,
                duration_s=duration,
                degraded=degraded,
            ),
            warnings=tuple(warnings),
        )

    async def _style(self, session: RenderSession, rules: PageRules) -> StyleReport:
        try:
            return await asyncio.wait_for(self._styler.apply(session, rules), timeout=step_timeout(rules))
        except asyncio.TimeoutError as exc:
            raise ConversionError(f"Styling did not finish within {rules.timeout_ms}ms") from exc

    async def _navigate(self, session: RenderSession, document: Document, rules: PageRules) -> None:
        try:
            await session.navigate(document.source_path.as_uri(), timeout_ms=rules.timeout_ms)
        except SessionError as exc:
            raise NavigationError(str(exc)) from exc

    def _failure(
        self, document: Document, stage: str, code: str, reason: str, warnings: list[str]
    ) -> ConversionResult:
        return ConversionResult(
            document=document,
            outcome=Failure(stage=stage, reason=reason, code=code),
            warnings=tuple(warnings),
        )


__all__ = ["ExportService", "ProgressCallback", "chunked", "generate_batch_id", "step_timeout"]

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..config import ExportConfig, dump_config, load_config
from ..core import ExportService
from ..detection import DEFAULT, DocumentType
from ..errors import ExportError
from ..models import BatchResult, ConversionResult, Failure
from ..utils import format_bytes, format_duration

console = Console()

app = typer.Typer(help="Export built HTML pages to print-ready PDFs")


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _load_config(path: Path | None) -> ExportConfig:
    try:
        return load_config(path)
    except ExportError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(1) from exc


def _print_summary(result: BatchResult) -> None:
    stats = result.stats
    console.print()
    console.print("Conversion complete:")
    console.print(f"[green]✓ {stats.successful} files converted successfully[/green]")
    if stats.degraded:
        console.print(f"[yellow]! {stats.degraded} captured before content settled[/yellow]")
    if stats.failed:
        console.print(f"[red]✗ {stats.failed} files failed[/red]")
        table = Table(title="Failed documents")
        table.add_column("Document")
        table.add_column("Stage")
        table.add_column("Reason")
        for failed in result.failures:
            outcome = failed.outcome
            if isinstance(outcome, Failure):
                table.add_row(failed.document.name, outcome.stage, f"{outcome.code}: {outcome.reason}")
        console.print(table)
    console.print(f"Total time: {format_duration(stats.duration_s)}")
    report = result.publish
    if report is not None:
        if report.skipped:
            console.print(f"[yellow]Publishing skipped[/yellow]: {report.skipped_reason}")
        else:
            console.print(f"Copied {len(report.copied)} PDF(s) to {report.directory}")
            for path, reason in report.failed:
                console.print(f"[red]✗ Failed to copy {path.name}[/red]: {reason}")


def _describe(result: ConversionResult) -> str:
    outcome = result.outcome
    if isinstance(outcome, Failure):
        return f"[red]failed[/red] {result.document.name}"
    return f"{result.document.name} ({format_bytes(outcome.byte_size)})"


@app.command()
def export(
    input_dir: Path = typer.Option(Path("dist"), "--input", "-i", help="Directory of built HTML pages"),
    output_dir: Path = typer.Option(Path("output"), "--output", "-o", help="Directory for generated PDFs"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to the JSON or TOML configuration"),
    file: Path | None = typer.Option(None, "--file", "-f", help="Convert a single HTML file"),
    parallel: int = typer.Option(1, "--parallel", "-p", min=1, help="Number of concurrent conversions"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print warnings and the summary"),
    publish_dir: Path | None = typer.Option(None, "--publish-dir", help="Where to copy finished PDFs"),
    no_publish: bool = typer.Option(False, "--no-publish", help="Do not copy PDFs after the batch"),
    fail_on_error: bool | None = typer.Option(
        None,
        "--fail-on-error/--no-fail-on-error",
        help="Exit non-zero when any document fails (default: only in single-file mode)",
    ),
) -> None:
    _configure_logging(verbose, quiet)
    cfg = _load_config(config)
    service = ExportService(
        cfg,
        input_dir=input_dir,
        output_dir=output_dir,
        publish_dir=publish_dir,
        publish=not no_publish,
    )
    try:
        if file is not None:
            result = service.convert_single(file)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=console,
                disable=quiet,
            ) as progress:
                task = progress.add_task("Processing files...", total=None)

                def advance(done: int, total: int, converted: ConversionResult) -> None:
                    progress.update(task, completed=done, total=total, description=_describe(converted))

                result = service.run(parallelism=parallel, progress=advance)
    except ExportError as exc:
        console.print(f"[red]Fatal error[/red]: {exc.code} - {exc}")
        raise typer.Exit(1) from exc

    _print_summary(result)
    strict = fail_on_error if fail_on_error is not None else file is not None
    if strict and result.stats.failed:
        raise typer.Exit(1)


@app.command("config")
def show_config(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to the JSON or TOML configuration"),
    document_type: str | None = typer.Option(None, "--type", "-t", help="Show resolved settings for one type"),
) -> None:
    cfg = _load_config(config)
    selected: DocumentType | None = None
    if document_type is not None:
        selected = DocumentType(document_type) if document_type in cfg.document_types else DEFAULT
    console.print_json(dump_config(cfg, selected))


if __name__ == "__main__":
    app()

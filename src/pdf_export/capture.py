from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import PageRules
from .discovery import Document
from .engine import RenderSession
from .errors import CaptureError, SessionError
from .utils import atomic_write_bytes, output_path_for


@dataclass(frozen=True, slots=True)
class CaptureResult:
    output_path: Path
    byte_size: int
    duration_s: float


def pdf_options(rules: PageRules) -> dict[str, Any]:
    options: dict[str, Any] = {
        "format": rules.format,
        "landscape": rules.landscape,
        "margin": rules.margin.as_dict(),
        "print_background": rules.print_background,
        "prefer_css_page_size": rules.prefer_css_page_size,
        "display_header_footer": rules.display_header_footer,
        "scale": rules.scale,
    }
    if rules.display_header_footer:
        options["header_template"] = rules.header_template
        options["footer_template"] = rules.footer_template
    return options


class CaptureEngine:
    def __init__(self, output_root: Path) -> None:
        self._output_root = output_root

    def output_path_for(self, document: Document) -> Path:
        return output_path_for(document.relative_path, self._output_root)

    async def capture(self, session: RenderSession, document: Document, rules: PageRules) -> CaptureResult:
        """Print *session* to PDF and write it to the mirrored output path.

        Every failure, including the capture timeout, raises
        :class:`CaptureError`.
        """

        start = time.perf_counter()
        target = self.output_path_for(document)
        timeout = rules.timeout_ms / 1000 if rules.timeout_ms else None
        try:
            payload = await asyncio.wait_for(session.print_pdf(**pdf_options(rules)), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise CaptureError(f"PDF capture exceeded {rules.timeout_ms}ms") from exc
        except SessionError as exc:
            raise CaptureError(str(exc)) from exc
        if not payload:
            raise CaptureError("Engine returned an empty PDF")
        try:
            atomic_write_bytes(target, payload)
            size = target.stat().st_size
        except OSError as exc:
            raise CaptureError(f"Cannot write {target}: {exc}") from exc
        return CaptureResult(output_path=target, byte_size=size, duration_s=time.perf_counter() - start)


__all__ = ["CaptureEngine", "CaptureResult", "pdf_options"]

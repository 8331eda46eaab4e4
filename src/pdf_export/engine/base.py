from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from ..config import Viewport


class RenderSession(Protocol):
    """One rendering context (a browser page) owned by one conversion.

    Implementations raise :class:`~pdf_export.errors.SessionError` when the
    engine rejects a command.
    """

    async def navigate(self, url: str, *, timeout_ms: int) -> None:  # pragma: no cover - interface
        ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any:  # pragma: no cover - interface
        ...

    async def add_style(self, css: str) -> None:  # pragma: no cover - interface
        ...

    async def print_pdf(self, **options: Any) -> bytes:  # pragma: no cover - interface
        ...


class RenderEngine(Protocol):
    """A long-lived engine shared by every session of a batch."""

    async def start(self) -> None:  # pragma: no cover - interface
        ...

    async def stop(self) -> None:  # pragma: no cover - interface
        ...

    def session(self, viewport: Viewport) -> AbstractAsyncContextManager[RenderSession]:  # pragma: no cover - interface
        ...

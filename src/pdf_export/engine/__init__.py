from __future__ import annotations

from .base import RenderEngine, RenderSession


def create_engine() -> RenderEngine:
    from .chromium import ChromiumEngine

    return ChromiumEngine()


__all__ = ["RenderEngine", "RenderSession", "create_engine"]

"""Wait for asynchronously rendered content before capture.

Pages draw their charts progressively and expose no completion event, so
readiness is polled: a predicate is evaluated against the live document
until it holds or a deadline passes. A missed deadline never fails the
conversion; it resolves to ``DEGRADED`` and the page is captured as-is.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .config import WaitRules
from .engine import RenderSession
from .errors import SessionError

LOGGER = logging.getLogger(__name__)

RENDERED_PREDICATE = """
({loadingSelector, cellSelector}) => {
  if (document.querySelectorAll(loadingSelector).length > 0) return false;
  const svgs = document.querySelectorAll('svg');
  if (svgs.length === 0) {
    const cells = document.querySelectorAll(cellSelector);
    return cells.length === 0 || Array.from(cells).every(cell => cell.children.length > 0);
  }
  return Array.from(svgs).every(svg => svg.children.length > 0);
}
"""

SVGS_PREDICATE = """
() => Array.from(document.querySelectorAll('svg')).every(
  svg => svg.children.length > 0 || svg.hasAttribute('data-rendered')
)
"""

IMAGES_PREDICATE = """
() => Array.from(document.querySelectorAll('img')).every(img => img.complete)
"""

SVG_COUNT = "() => document.querySelectorAll('svg').length"


class ReadinessState(str, Enum):
    WAITING = "waiting"
    READY = "ready"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class ReadinessOutcome:
    label: str
    state: ReadinessState
    waited_s: float
    polls: int
    reason: str | None = None

    @property
    def degraded(self) -> bool:
        return self.state is ReadinessState.DEGRADED


Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[Any]]


class RenderReadinessGate:
    def __init__(
        self,
        rules: WaitRules,
        *,
        clock: Clock | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._rules = rules
        self._clock = clock
        self._sleep = sleep

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def wait_until_ready(self, session: RenderSession) -> ReadinessOutcome:
        """Block until every chart has content or the render deadline passes."""

        rules = self._rules
        outcome = await self.poll(
            session,
            "render",
            RENDERED_PREDICATE,
            {"loadingSelector": rules.loading_selector, "cellSelector": rules.cell_selector},
            timeout_s=rules.render_timeout_ms / 1000,
        )
        if outcome.degraded:
            LOGGER.warning("Render readiness timed out after %.1fs: %s", outcome.waited_s, outcome.reason)
        else:
            LOGGER.debug("Render ready after %d poll(s) in %.2fs", outcome.polls, outcome.waited_s)
        return outcome

    async def wait_for_optional(self, session: RenderSession) -> list[ReadinessOutcome]:
        """Run the per-run secondary conditions, each under its own deadline."""

        rules = self._rules
        timeout_s = rules.condition_timeout_ms / 1000
        outcomes: list[ReadinessOutcome] = []
        if rules.wait_for_svgs:
            outcomes.append(await self.poll(session, "svgs", SVGS_PREDICATE, None, timeout_s=timeout_s))
        if rules.wait_for_images:
            outcomes.append(await self.poll(session, "images", IMAGES_PREDICATE, None, timeout_s=timeout_s))
        for outcome in outcomes:
            if outcome.degraded:
                LOGGER.warning("Optional wait for %s timed out: %s", outcome.label, outcome.reason)
        if rules.additional_wait_ms:
            await self._sleep(rules.additional_wait_ms / 1000)
        return outcomes

    async def poll(
        self,
        session: RenderSession,
        label: str,
        expression: str,
        arg: Any,
        *,
        timeout_s: float,
    ) -> ReadinessOutcome:
        interval = max(self._rules.poll_interval_ms, 1) / 1000
        start = self._now()
        deadline = start + max(timeout_s, 0.0)
        polls = 0
        last_error: str | None = None
        state = ReadinessState.WAITING
        while state is ReadinessState.WAITING:
            remaining = deadline - self._now()
            if remaining <= 0:
                state = ReadinessState.DEGRADED
                break
            polls += 1
            try:
                if await asyncio.wait_for(session.evaluate(expression, arg), timeout=remaining):
                    state = ReadinessState.READY
                    break
            except asyncio.TimeoutError:
                last_error = "predicate evaluation did not return before the deadline"
                continue
            except SessionError as exc:
                last_error = str(exc)
            remaining = deadline - self._now()
            if remaining > 0:
                await self._sleep(min(interval, remaining))
        reason = None
        if state is ReadinessState.DEGRADED:
            reason = f"{label} not settled after {timeout_s:.1f}s"
            if last_error:
                reason = f"{reason} ({last_error})"
        return ReadinessOutcome(
            label=label,
            state=state,
            waited_s=self._now() - start,
            polls=polls,
            reason=reason,
        )

    async def count_visualizations(self, session: RenderSession, *, timeout_s: float | None = None) -> int:
        try:
            count = await asyncio.wait_for(session.evaluate(SVG_COUNT), timeout=timeout_s)
        except asyncio.TimeoutError:
            LOGGER.warning("Counting SVG elements did not finish within %.1fs", timeout_s or 0.0)
            return 0
        except SessionError as exc:
            LOGGER.debug("Could not count SVG elements: %s", exc)
            return 0
        return int(count or 0)


__all__ = ["ReadinessOutcome", "ReadinessState", "RenderReadinessGate"]

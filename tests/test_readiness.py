import asyncio
from typing import Any

from fakes import FakeSession

from pdf_export.config import WaitRules
from pdf_export.errors import SessionError
from pdf_export.readiness import ReadinessState, RenderReadinessGate


def test_ready_once_predicate_flips() -> None:
    session = FakeSession(ready_after=3)
    gate = RenderReadinessGate(WaitRules(render_timeout_ms=2000, poll_interval_ms=1))
    outcome = asyncio.run(gate.wait_until_ready(session))
    assert outcome.state is ReadinessState.READY
    assert outcome.polls == 4
    assert outcome.reason is None
    assert not outcome.degraded


def test_never_ready_degrades_within_deadline() -> None:
    session = FakeSession(never_ready=True)
    gate = RenderReadinessGate(WaitRules(render_timeout_ms=200, poll_interval_ms=20))
    outcome = asyncio.run(gate.wait_until_ready(session))
    assert outcome.state is ReadinessState.DEGRADED
    assert 0.2 <= outcome.waited_s < 0.7
    assert outcome.reason is not None
    assert outcome.reason.startswith("render not settled after 0.2s")


def test_hanging_evaluation_is_bounded_by_deadline() -> None:
    session = FakeSession(hang=True)
    gate = RenderReadinessGate(WaitRules(render_timeout_ms=100, poll_interval_ms=10))
    outcome = asyncio.run(gate.wait_until_ready(session))
    assert outcome.degraded
    assert outcome.polls == 1
    assert outcome.waited_s < 1.0
    assert "did not return" in (outcome.reason or "")


class FlakySession(FakeSession):
    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.attempts += 1
        if self.attempts == 1:
            raise SessionError("Execution context was destroyed")
        return True


def test_session_errors_keep_polling() -> None:
    session = FlakySession()
    gate = RenderReadinessGate(WaitRules(render_timeout_ms=1000, poll_interval_ms=1))
    outcome = asyncio.run(gate.wait_until_ready(session))
    assert outcome.state is ReadinessState.READY
    assert outcome.polls == 2


def test_optional_waits_degrade_independently() -> None:
    session = FakeSession(svgs_ready=False)
    gate = RenderReadinessGate(WaitRules(condition_timeout_ms=50, poll_interval_ms=5))
    outcomes = asyncio.run(gate.wait_for_optional(session))
    assert [outcome.label for outcome in outcomes] == ["svgs", "images"]
    assert outcomes[0].degraded
    assert outcomes[1].state is ReadinessState.READY


def test_additional_wait_is_applied_after_conditions() -> None:
    slept: list[float] = []

    async def record(seconds: float) -> None:
        slept.append(seconds)

    rules = WaitRules(wait_for_svgs=False, wait_for_images=False, additional_wait_ms=1500)
    session = FakeSession()
    outcomes = asyncio.run(RenderReadinessGate(rules, sleep=record).wait_for_optional(session))
    assert outcomes == []
    assert slept == [1.5]
    assert session.calls == []


def test_count_visualizations() -> None:
    gate = RenderReadinessGate(WaitRules())
    assert asyncio.run(gate.count_visualizations(FakeSession(svg_count=4))) == 4


def test_count_visualizations_is_bounded() -> None:
    gate = RenderReadinessGate(WaitRules())
    session = FakeSession(svg_count=4, hang_scripts={"svg_count"})
    count = asyncio.run(asyncio.wait_for(gate.count_visualizations(session, timeout_s=0.05), timeout=5))
    assert count == 0

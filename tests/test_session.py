from datetime import datetime, timedelta, timezone

from civic_voice.models import HISTORY_CAPACITY, InputMode
from civic_voice.session import SessionRegistry


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def test_upsert_creates_then_refreshes_context() -> None:
    registry = SessionRegistry()

    created = registry.upsert("s1", language="hi", input_mode=InputMode.voice)
    refreshed = registry.upsert("s1", language="ta", input_mode=InputMode.text)

    assert created is refreshed
    assert refreshed.current_language == "ta"
    assert refreshed.input_mode == InputMode.text
    assert refreshed.total_interactions == 2
    assert len(registry) == 1
    assert "s1" in registry


def test_failures_accumulate_and_success_resets() -> None:
    registry = SessionRegistry()
    registry.upsert("s1", language="hi", input_mode=InputMode.voice)

    registry.record_failure("s1", input_mode=InputMode.voice)
    context = registry.record_failure("s1", input_mode=InputMode.voice)
    assert context is not None
    assert context.failure_count == 2
    assert [entry.succeeded for entry in context.history] == [True, False, False]

    registry.record_success("s1", language="bn", input_mode=InputMode.voice)
    assert context.failure_count == 0
    assert context.current_language == "bn"
    assert context.total_interactions == 4


def test_unknown_session_updates_are_ignored() -> None:
    registry = SessionRegistry()

    assert registry.record_failure("ghost", input_mode=InputMode.voice) is None
    assert registry.record_success("ghost", language="hi", input_mode=InputMode.text) is None
    assert registry.switch_mode("ghost", InputMode.text) is None
    assert registry.mark_fallback_suggested("ghost") is False
    assert registry.remove("ghost") is False
    assert len(registry) == 0


def test_claim_fallback_flips_once() -> None:
    registry = SessionRegistry()
    registry.upsert("s1", language="hi", input_mode=InputMode.voice)
    registry.record_failure("s1", input_mode=InputMode.voice)

    assert registry.claim_fallback("s1", 2) is None

    registry.record_failure("s1", input_mode=InputMode.voice)
    assert registry.claim_fallback("s1", 2) is not None
    assert registry.claim_fallback("s1", 2) is None

    registry.record_failure("s1", input_mode=InputMode.voice)
    assert registry.claim_fallback("s1", 2) is None


def test_claim_fallback_ignores_text_sessions() -> None:
    registry = SessionRegistry()
    registry.upsert("s1", language="hi", input_mode=InputMode.text)
    for _ in range(3):
        registry.record_failure("s1", input_mode=InputMode.text)

    assert registry.claim_fallback("s1", 2) is None


def test_switch_mode_resets_failure_tracking() -> None:
    registry = SessionRegistry()
    registry.upsert("s1", language="hi", input_mode=InputMode.voice)
    registry.record_failure("s1", input_mode=InputMode.voice)
    registry.record_failure("s1", input_mode=InputMode.voice)
    registry.claim_fallback("s1", 2)

    previous, context = registry.switch_mode("s1", InputMode.text)

    assert previous == InputMode.voice
    assert context.input_mode == InputMode.text
    assert context.failure_count == 0
    assert context.fallback_suggested is False
    assert context.last_successful_mode() == InputMode.text


def test_history_is_bounded() -> None:
    registry = SessionRegistry()
    registry.upsert("s1", language="hi", input_mode=InputMode.voice)
    for _ in range(14):
        registry.record_failure("s1", input_mode=InputMode.voice)

    context = registry.get("s1")
    assert len(context.history) == HISTORY_CAPACITY
    assert context.total_interactions == 15
    assert context.last_successful_mode() is None


def test_expire_stale_removes_only_idle_sessions() -> None:
    clock = FakeClock()
    registry = SessionRegistry(timeout_minutes=30, clock=clock)
    registry.upsert("old", language="hi", input_mode=InputMode.voice)
    clock.advance(minutes=20)
    registry.upsert("fresh", language="en", input_mode=InputMode.text)
    clock.advance(minutes=11)

    assert registry.expire_stale() == ["old"]
    assert "fresh" in registry
    assert "old" not in registry


def test_statistics_count_active_sessions_and_modes() -> None:
    clock = FakeClock()
    registry = SessionRegistry(clock=clock)
    registry.upsert("a", language="hi", input_mode=InputMode.voice)
    registry.upsert("a", language="hi", input_mode=InputMode.voice)
    clock.advance(minutes=10)
    registry.upsert("b", language="en", input_mode=InputMode.text)

    stats = registry.statistics()

    assert stats.total_sessions == 2
    assert stats.active_sessions == 1
    assert stats.average_interactions_per_session == 1.5
    assert stats.sessions_by_mode == {"voice": 1, "text": 1}


def test_statistics_for_empty_registry() -> None:
    stats = SessionRegistry().statistics()

    assert stats.total_sessions == 0
    assert stats.average_interactions_per_session == 0.0
    assert stats.sessions_by_mode == {"voice": 0, "text": 0}

"""Per-session voice context registry."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from civic_voice.models import HISTORY_CAPACITY, ContextStatistics, InputMode, SessionContext, utc_now

ACTIVE_WINDOW = timedelta(minutes=5)


class SessionRegistry:
    """Owns every ``SessionContext`` keyed by session id.

    Each mutation runs under one short lock so counters and the bounded history
    stay consistent when several callers touch the registry at once. Two racing
    updates to the same session are not ordered against each other; the last
    writer wins.
    """

    def __init__(
        self,
        *,
        timeout_minutes: int = 30,
        active_window: timedelta = ACTIVE_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._timeout = timedelta(minutes=timeout_minutes)
        self._active_window = active_window
        self._clock = clock
        self._contexts: dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._contexts

    def get(self, session_id: str) -> SessionContext | None:
        return self._contexts.get(session_id)

    def snapshot(self, session_id: str) -> SessionContext | None:
        """Detached copy of the context; changing it leaves the registry untouched."""
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return None
            return replace(context, history=deque(context.history, maxlen=HISTORY_CAPACITY))

    def upsert(self, session_id: str, *, language: str, input_mode: InputMode) -> SessionContext:
        """Create the context or refresh language and mode, keeping counters and history."""
        now = self._clock()
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                context = SessionContext(
                    session_id=session_id,
                    current_language=language,
                    input_mode=input_mode,
                    last_interaction_at=now,
                )
                self._contexts[session_id] = context
            context.current_language = language
            context.input_mode = input_mode
            context.total_interactions += 1
            context.record(input_mode=input_mode, succeeded=True, language=language, at=now)
            return context

    def remove(self, session_id: str) -> bool:
        with self._lock:
            return self._contexts.pop(session_id, None) is not None

    def record_success(self, session_id: str, *, language: str, input_mode: InputMode) -> SessionContext | None:
        now = self._clock()
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return None
            context.current_language = language
            context.failure_count = 0
            context.fallback_suggested = False
            context.total_interactions += 1
            context.record(input_mode=input_mode, succeeded=True, language=language, at=now)
            return context

    def record_failure(self, session_id: str, *, input_mode: InputMode) -> SessionContext | None:
        now = self._clock()
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return None
            context.failure_count += 1
            context.total_interactions += 1
            context.record(input_mode=input_mode, succeeded=False, language=context.current_language, at=now)
            return context

    def claim_fallback(self, session_id: str, threshold: int) -> SessionContext | None:
        """Atomically flag a voice session whose failures reached ``threshold``.

        Returns the context only for the call that flips ``fallback_suggested``.
        """
        with self._lock:
            context = self._contexts.get(session_id)
            if (
                context is None
                or context.input_mode != InputMode.voice
                or context.fallback_suggested
                or context.failure_count < threshold
            ):
                return None
            context.fallback_suggested = True
            return context

    def mark_fallback_suggested(self, session_id: str) -> bool:
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return False
            context.fallback_suggested = True
            return True

    def switch_mode(self, session_id: str, input_mode: InputMode) -> tuple[InputMode, SessionContext] | None:
        """Switch modality; a switch is a fresh start for failure tracking."""
        now = self._clock()
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return None
            previous = context.input_mode
            context.input_mode = input_mode
            context.failure_count = 0
            context.fallback_suggested = False
            context.record(input_mode=input_mode, succeeded=True, language=context.current_language, at=now)
            return previous, context

    def expire_stale(self) -> list[str]:
        """Drop contexts idle for longer than the timeout and return their ids."""
        cutoff = self._clock() - self._timeout
        with self._lock:
            expired = [sid for sid, ctx in self._contexts.items() if ctx.last_interaction_at < cutoff]
            for session_id in expired:
                del self._contexts[session_id]
        return expired

    def statistics(self) -> ContextStatistics:
        now = self._clock()
        with self._lock:
            contexts = list(self._contexts.values())

        total = len(contexts)
        active = sum(1 for ctx in contexts if now - ctx.last_interaction_at < self._active_window)
        interactions = sum(ctx.total_interactions for ctx in contexts)
        by_mode = {mode.value: 0 for mode in InputMode}
        for ctx in contexts:
            by_mode[ctx.input_mode.value] += 1

        return ContextStatistics(
            total_sessions=total,
            active_sessions=active,
            average_interactions_per_session=round(interactions / total, 2) if total else 0.0,
            sessions_by_mode=by_mode,
        )

"""Decide whether predictions for a race weekend are still open."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Tuple

from django.conf import settings

from .models import SessionKind


DEFAULT_LOCK_BUFFER = timedelta(minutes=15)

# Sessions whose start time closes predictions, highest priority first.
# RACE is the fallback when no qualifying data has been loaded.
GOVERNING_SESSION_PRIORITY = (
    SessionKind.SPRINT_QUALIFYING,
    SessionKind.QUALIFYING,
    SessionKind.RACE,
)


@dataclass(frozen=True)
class LockDecision:
    """Result of evaluating a race weekend schedule at a point in time."""

    is_locked: bool
    lock_boundary: Optional[datetime]
    governing_session: Optional[str]

    @property
    def is_open(self) -> bool:
        return not self.is_locked


def get_lock_buffer() -> timedelta:
    """Return the configured buffer between lock time and the governing session."""

    minutes = getattr(settings, 'PREDICTION_LOCK_BUFFER_MINUTES', None)
    if minutes is None:
        return DEFAULT_LOCK_BUFFER
    return timedelta(minutes=minutes)


def _session_entry(session: Any) -> Tuple[str, datetime]:
    if isinstance(session, tuple):
        kind, starts_at = session
    else:
        kind, starts_at = session.kind, session.starts_at
    return str(kind), starts_at


def select_governing_session(sessions: Iterable[Any]) -> Optional[Tuple[str, datetime]]:
    """Return the ``(kind, starts_at)`` pair that gates prediction changes.

    ``sessions`` may contain ``(kind, starts_at)`` tuples or objects exposing
    ``kind`` and ``starts_at`` such as :class:`~.models.RaceSession`.
    """

    schedule = dict(_session_entry(session) for session in sessions)
    for kind in GOVERNING_SESSION_PRIORITY:
        starts_at = schedule.get(kind.value)
        if starts_at is not None:
            return kind.value, starts_at
    return None


def compute_lock_decision(
    sessions: Iterable[Any],
    now: datetime,
    *,
    buffer: timedelta = DEFAULT_LOCK_BUFFER,
) -> LockDecision:
    """Evaluate whether predictions for a schedule are locked at ``now``.

    The boundary itself counts as locked. A schedule without any governing
    session stays open; callers treat that as incomplete data.
    """

    if now.tzinfo is None:
        raise ValueError("compute_lock_decision requires a timezone-aware 'now'.")

    governing = select_governing_session(sessions)
    if governing is None:
        return LockDecision(is_locked=False, lock_boundary=None, governing_session=None)

    kind, starts_at = governing
    lock_boundary = starts_at - buffer
    return LockDecision(
        is_locked=now >= lock_boundary,
        lock_boundary=lock_boundary,
        governing_session=kind,
    )

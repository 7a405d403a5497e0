"""Discovery of completed sessions that can be scored."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from .models import Prediction, RaceSession, ScoredSessionType


@dataclass(frozen=True)
class CompletedSession:
    race_id: int
    race_name: str
    session_type: str
    payload: Any


class SessionNotScoreable(Exception):
    """Raised when a specific session cannot be scored (missing, incomplete or wrong kind)."""


class ResultsSource:
    """Reads completed sessions and their official result payloads."""

    def get_completed_sessions(self, *, limit: Optional[int] = None) -> List[CompletedSession]:
        """Return completed race/sprint sessions with results and unscored predictions.

        Newest sessions come first.
        """

        unscored = Prediction.objects.filter(points__isnull=True).values_list('race_id', 'session_type')
        outstanding = set(unscored.distinct())
        if not outstanding:
            return []

        sessions = (
            RaceSession.objects.filter(
                completed=True,
                results_json__isnull=False,
                kind__in=ScoredSessionType.values,
                race_id__in={race_id for race_id, _ in outstanding},
            )
            .select_related('race')
            .order_by('-starts_at')
        )

        completed = []
        for session in sessions:
            if (session.race_id, session.kind) not in outstanding:
                continue
            completed.append(self._to_completed(session))
            if limit is not None and len(completed) >= limit:
                break
        return completed

    def get_session(self, race_id: int, session_type: str) -> CompletedSession:
        if session_type not in ScoredSessionType.values:
            raise SessionNotScoreable(f"Only {' and '.join(ScoredSessionType.values)} sessions can be scored.")

        session = (
            RaceSession.objects.filter(race_id=race_id, kind=session_type)
            .select_related('race')
            .first()
        )
        if session is None:
            raise SessionNotScoreable(f"No {session_type} session found for race {race_id}.")
        if not session.completed or session.results_json is None:
            raise SessionNotScoreable(
                f"{session.race.name} {session_type} is not completed or has no results yet."
            )
        return self._to_completed(session)

    def _to_completed(self, session: RaceSession) -> CompletedSession:
        return CompletedSession(
            race_id=session.race_id,
            race_name=session.race.name,
            session_type=session.kind,
            payload=session.results_json,
        )

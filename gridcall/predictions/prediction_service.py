"""Create, update, delete and score predictions while honouring the lock clock."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from django.db import transaction
from django.utils import timezone

from .lock_clock import LockDecision, compute_lock_decision, get_lock_buffer
from .models import Prediction, Race, ScoredSessionType
from .scoring import ScoringBreakdown, validate_prediction

logger = logging.getLogger(__name__)


class PredictionLocked(Exception):
    """Raised when a prediction is changed after its lock boundary."""

    def __init__(self, race: Race, decision: LockDecision) -> None:
        self.race = race
        self.decision = decision
        super().__init__(
            f"Predictions for {race.name} locked at {decision.lock_boundary.isoformat()} "
            f"({decision.governing_session})."
        )


class PredictionNotFound(Exception):
    """Raised when the requested prediction does not exist for the user."""


class RaceNotFound(Exception):
    """Raised when the requested race does not exist."""


class InvalidPrediction(ValueError):
    """Raised when submitted picks fail validation."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__('; '.join(self.errors))


class PredictionRepository:
    """Persistence boundary for predictions.

    Every mutation locks the race row and evaluates the lock decision inside
    the same transaction as the write, so a prediction can never be saved
    after its boundary.
    """

    def get(
        self,
        user_id: int,
        race_id: int,
        session_type: str = ScoredSessionType.RACE,
    ) -> Optional[Prediction]:
        return (
            Prediction.objects.filter(user_id=user_id, race_id=race_id, session_type=session_type)
            .select_related('race')
            .first()
        )

    def get_lock_decision(self, race_id: int, *, now: Optional[datetime] = None) -> LockDecision:
        race = Race.objects.filter(pk=race_id).first()
        if race is None:
            raise RaceNotFound(f"Race {race_id} does not exist.")
        return compute_lock_decision(race.sessions.all(), now or timezone.now(), buffer=get_lock_buffer())

    def upsert(
        self,
        user_id: int,
        race_id: int,
        top_ten: Sequence[str],
        pole_pick: Optional[str] = None,
        fastest_lap_pick: Optional[str] = None,
        *,
        session_type: str = ScoredSessionType.RACE,
        now: Optional[datetime] = None,
    ) -> Prediction:
        """Create or replace the user's prediction for a race session."""

        errors = validate_prediction(top_ten)
        if session_type not in ScoredSessionType.values:
            errors.append(f"session_type must be one of {', '.join(ScoredSessionType.values)}")
        for name, value in (('pole_pick', pole_pick), ('fastest_lap_pick', fastest_lap_pick)):
            if value is not None and not isinstance(value, str):
                errors.append(f"{name} must be a driver reference")
        if errors:
            raise InvalidPrediction(errors)

        with transaction.atomic():
            race = self._lock_race(race_id)
            self._ensure_unlocked(race, now)
            prediction, created = Prediction.objects.update_or_create(
                user_id=user_id,
                race=race,
                session_type=session_type,
                defaults={
                    'top_ten': list(top_ten),
                    'pole_pick': pole_pick or None,
                    'fastest_lap_pick': fastest_lap_pick or None,
                },
            )

        logger.info(
            "%s prediction %s for user %s on %s (%s)",
            'Created' if created else 'Updated',
            prediction.pk,
            user_id,
            race.name,
            session_type,
        )
        return prediction

    def delete(self, prediction_id: int, user_id: int, *, now: Optional[datetime] = None) -> None:
        with transaction.atomic():
            prediction = (
                Prediction.objects.filter(pk=prediction_id, user_id=user_id)
                .select_related('race')
                .first()
            )
            if prediction is None:
                raise PredictionNotFound(f"Prediction {prediction_id} does not exist for user {user_id}.")
            race = self._lock_race(prediction.race_id)
            self._ensure_unlocked(race, now)
            prediction.delete()

        logger.info("Deleted prediction %s for user %s", prediction_id, user_id)

    def find_unscored(self, race_id: int, session_type: str) -> List[Prediction]:
        return list(
            Prediction.objects.filter(race_id=race_id, session_type=session_type, points__isnull=True)
            .select_related('user', 'race')
            .order_by('pk')
        )

    def set_score(self, prediction_id: int, breakdown: ScoringBreakdown) -> bool:
        """Store a score unless the prediction was scored meanwhile.

        Returns ``True`` when this call transitioned the prediction from
        unscored to scored.
        """

        updated = Prediction.objects.filter(pk=prediction_id, points__isnull=True).update(
            points=breakdown.total_points,
            points_breakdown=breakdown.to_dict(),
            updated_at=timezone.now(),
        )
        return updated == 1

    def reset_scores(self, race_id: int, session_type: str) -> int:
        """Clear stored scores so the session is picked up by the next scoring run."""

        count = Prediction.objects.filter(
            race_id=race_id,
            session_type=session_type,
            points__isnull=False,
        ).update(points=None, points_breakdown=None, updated_at=timezone.now())
        logger.info("Reset %d scored predictions for race %s (%s)", count, race_id, session_type)
        return count

    def _lock_race(self, race_id: int) -> Race:
        race = Race.objects.select_for_update().filter(pk=race_id).first()
        if race is None:
            raise RaceNotFound(f"Race {race_id} does not exist.")
        return race

    def _ensure_unlocked(self, race: Race, now: Optional[datetime]) -> None:
        decision = compute_lock_decision(
            race.sessions.all(),
            now or timezone.now(),
            buffer=get_lock_buffer(),
        )
        if decision.governing_session is None:
            logger.warning("Race %s has no qualifying or race session; predictions stay open", race.pk)
        if decision.is_locked:
            raise PredictionLocked(race, decision)

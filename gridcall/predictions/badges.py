"""Achievement badges unlocked from a user's scored prediction history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .models import BadgeUnlock, Prediction, Race, ScoredSessionType, SessionKind
from .notifications import NotificationDispatcher
from .scoring import DetailType, PODIUM_SIZE, TOP_TEN_SIZE, ScoringBreakdown

logger = logging.getLogger(__name__)

SEASON_BONUS_THRESHOLD = 5
STREAK_THRESHOLDS = (3, 5, 10)
ORACLE_STREAK = 3
REGULAR_MIN_RACES = 10


@dataclass(frozen=True)
class BadgeDefinition:
    code: str
    name: str
    description: str
    rarity: str


BADGE_DEFINITIONS = {
    badge.code: badge
    for badge in (
        BadgeDefinition('FIRST_PREDICTION', 'First Steps', 'First prediction scored', 'common'),
        BadgeDefinition('PERFECT_PODIUM', 'Perfect Podium', 'Predicted the exact podium', 'rare'),
        BadgeDefinition('ORACLE', 'Oracle', 'Three perfect podiums in a row', 'legendary'),
        BadgeDefinition('STREAK_3', 'In Form', 'Predicted three consecutive races', 'common'),
        BadgeDefinition('STREAK_5', 'Consistent', 'Predicted five consecutive races', 'common'),
        BadgeDefinition('STREAK_10', 'Unstoppable', 'Predicted ten consecutive races', 'rare'),
        BadgeDefinition('POLE_MASTER', 'Pole Hunter', 'Five correct pole picks in a season', 'rare'),
        BadgeDefinition(
            'FASTEST_LAP_EXPERT', 'Speed Demon', 'Five correct fastest lap picks in a season', 'rare'
        ),
        BadgeDefinition('REGULAR', 'Regular', 'Predicted every race of a season (min 10)', 'epic'),
        BadgeDefinition('TOP_10_PERFECT', 'Perfect Vision', 'Predicted the exact top ten', 'legendary'),
        BadgeDefinition(
            'PERFECT_WEEKEND', 'Perfect Weekend', 'Exact podium, pole and fastest lap in one session', 'legendary'
        ),
    )
}


def _load_breakdown(prediction: Prediction) -> Optional[ScoringBreakdown]:
    if prediction.points_breakdown is None:
        return None
    try:
        return ScoringBreakdown.from_dict(prediction.points_breakdown)
    except ValueError as exc:
        logger.warning("Ignoring malformed breakdown on prediction %s: %s", prediction.pk, exc)
        return None


def is_perfect_podium(breakdown: ScoringBreakdown) -> bool:
    podium = breakdown.details[:PODIUM_SIZE]
    return len(podium) == PODIUM_SIZE and all(detail.type == DetailType.EXACT for detail in podium)


def is_perfect_top_ten(breakdown: ScoringBreakdown) -> bool:
    return len(breakdown.details) == TOP_TEN_SIZE and all(
        detail.type == DetailType.EXACT for detail in breakdown.details
    )


class BadgeEvaluator:
    """Unlocks badges after a prediction has been scored.

    Evaluation is idempotent: a badge unlocks at most once per user, so
    re-evaluating the same prediction never creates duplicates.
    """

    def __init__(self, notifier: Optional[NotificationDispatcher] = None) -> None:
        self.notifier = notifier or NotificationDispatcher()

    def evaluate(self, user_id: int, race_id: int, prediction_id: int) -> List[str]:
        prediction = Prediction.objects.select_related('race').filter(pk=prediction_id).first()
        if prediction is None or prediction.points is None:
            return []

        breakdown = _load_breakdown(prediction)
        if breakdown is None:
            return []

        history = list(
            Prediction.objects.filter(user_id=user_id, points__isnull=False)
            .select_related('race')
            .order_by('-race__season', '-race__round', 'session_type')
        )
        season = prediction.race.season
        season_breakdowns = [
            loaded
            for loaded in (_load_breakdown(item) for item in history if item.race.season == season)
            if loaded is not None
        ]

        candidates = []
        if history:
            candidates.append('FIRST_PREDICTION')
        if is_perfect_podium(breakdown):
            candidates.append('PERFECT_PODIUM')
            if breakdown.pole_points and breakdown.fastest_lap_points:
                candidates.append('PERFECT_WEEKEND')
        if is_perfect_top_ten(breakdown):
            candidates.append('TOP_10_PERFECT')
        if breakdown.pole_points:
            if sum(1 for item in season_breakdowns if item.pole_points) >= SEASON_BONUS_THRESHOLD:
                candidates.append('POLE_MASTER')
        if breakdown.fastest_lap_points:
            if sum(1 for item in season_breakdowns if item.fastest_lap_points) >= SEASON_BONUS_THRESHOLD:
                candidates.append('FASTEST_LAP_EXPERT')

        race_history = [item for item in history if item.session_type == ScoredSessionType.RACE]
        streak = self._prediction_streak(race_history)
        candidates.extend(f'STREAK_{threshold}' for threshold in STREAK_THRESHOLDS if streak >= threshold)
        if self._perfect_podium_streak(race_history) >= ORACLE_STREAK:
            candidates.append('ORACLE')
        if self._predicted_whole_season(race_history, season):
            candidates.append('REGULAR')

        return [code for code in candidates if self._award(user_id, code, race_id)]

    def _award(self, user_id: int, badge_code: str, race_id: Optional[int]) -> bool:
        _, created = BadgeUnlock.objects.get_or_create(
            user_id=user_id,
            badge_code=badge_code,
            defaults={'race_id': race_id},
        )
        if not created:
            return False

        logger.info("Awarded %s to user %s", badge_code, user_id)
        definition = BADGE_DEFINITIONS.get(badge_code)
        self.notifier.notify_badge_unlocked(
            user_id,
            badge_code,
            race_id,
            badge_name=definition.name if definition else None,
        )
        return True

    def _completed_races(self, season: Optional[int] = None):
        races = Race.objects.filter(sessions__kind=SessionKind.RACE, sessions__completed=True)
        if season is not None:
            races = races.filter(season=season)
        return races.distinct().order_by('-season', '-round')

    def _prediction_streak(self, race_history: Iterable[Prediction]) -> int:
        predicted_race_ids = {item.race_id for item in race_history}
        streak = 0
        for race_id in self._completed_races().values_list('id', flat=True):
            if race_id not in predicted_race_ids:
                break
            streak += 1
        return streak

    def _perfect_podium_streak(self, race_history: Iterable[Prediction]) -> int:
        streak = 0
        for item in race_history:
            breakdown = _load_breakdown(item)
            if breakdown is None or not is_perfect_podium(breakdown):
                break
            streak += 1
        return streak

    def _predicted_whole_season(self, race_history: Iterable[Prediction], season: int) -> bool:
        season_race_ids = set(self._completed_races(season).values_list('id', flat=True))
        if len(season_race_ids) < REGULAR_MIN_RACES:
            return False
        predicted = {item.race_id for item in race_history if item.race.season == season}
        return season_race_ids <= predicted

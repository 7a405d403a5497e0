"""Point calculation for race predictions.

Everything in this module is pure: the same prediction and results always
produce the same :class:`ScoringBreakdown`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence, Tuple

TOP_TEN_SIZE = 10
PODIUM_SIZE = 3

EXACT_POSITION_POINTS: Mapping[int, int] = MappingProxyType({
    1: 25,
    2: 18,
    3: 15,
    4: 12,
    5: 10,
    6: 8,
    7: 6,
    8: 4,
    9: 2,
    10: 1,
})

# Indexed by predicted position.
PARTIAL_POSITION_POINTS: Mapping[int, int] = MappingProxyType({
    1: 10,
    2: 8,
    3: 6,
})

POLE_POSITION_POINTS = 10
FASTEST_LAP_POINTS = 5
PODIUM_EXACT_ORDER_BONUS = 50
PODIUM_ANY_ORDER_BONUS = 20


class DetailType:
    EXACT = 'exact'
    PARTIAL = 'partial'
    NONE = 'none'

    ALL = (EXACT, PARTIAL, NONE)


@dataclass(frozen=True)
class ScoringTable:
    """Point values used by :func:`calculate_score`.

    Partial credit is paid for a driver who finished at a different position
    within the top ``partial_credit_depth`` than the one predicted.
    """

    exact_position_points: Mapping[int, int] = field(default_factory=lambda: EXACT_POSITION_POINTS)
    partial_position_points: Mapping[int, int] = field(default_factory=lambda: PARTIAL_POSITION_POINTS)
    partial_credit_depth: int = PODIUM_SIZE
    pole_points: int = POLE_POSITION_POINTS
    fastest_lap_points: int = FASTEST_LAP_POINTS
    podium_exact_order_bonus: int = PODIUM_EXACT_ORDER_BONUS
    podium_any_order_bonus: int = PODIUM_ANY_ORDER_BONUS

    def __post_init__(self) -> None:
        values = [
            *self.exact_position_points.values(),
            *self.partial_position_points.values(),
            self.pole_points,
            self.fastest_lap_points,
            self.podium_exact_order_bonus,
            self.podium_any_order_bonus,
        ]
        if any(value < 0 for value in values):
            raise ValueError("Scoring table values must not be negative.")


DEFAULT_SCORING_TABLE = ScoringTable()


@dataclass(frozen=True)
class RaceResults:
    """Official outcome of a session."""

    positions: Tuple[str, ...]
    pole: Optional[str] = None
    fastest_lap: Optional[str] = None


@dataclass(frozen=True)
class PredictionPicks:
    """The scoreable part of a prediction."""

    positions: Tuple[str, ...]
    pole: Optional[str] = None
    fastest_lap: Optional[str] = None

    @classmethod
    def from_prediction(cls, prediction) -> 'PredictionPicks':
        """Build picks from a :class:`~.models.Prediction`, padding unfilled slots."""

        top_ten = [str(driver or '') for driver in (prediction.top_ten or [])][:TOP_TEN_SIZE]
        top_ten.extend([''] * (TOP_TEN_SIZE - len(top_ten)))
        return cls(
            positions=tuple(top_ten),
            pole=prediction.pole_pick or None,
            fastest_lap=prediction.fastest_lap_pick or None,
        )


@dataclass(frozen=True)
class PositionDetail:
    predicted: int
    actual: Optional[int]
    driver_id: str
    points: int
    type: str


@dataclass(frozen=True)
class ScoringBreakdown:
    """Auditable result of scoring one prediction."""

    position_points: int = 0
    partial_points: int = 0
    pole_points: int = 0
    fastest_lap_points: int = 0
    podium_bonus: int = 0
    total_points: int = 0
    details: Tuple[PositionDetail, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data['details'] = [asdict(detail) for detail in self.details]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ScoringBreakdown':
        """Rebuild a breakdown from its stored form, rejecting malformed data."""

        if not isinstance(data, Mapping):
            raise ValueError("Scoring breakdown must be a mapping.")

        totals = {}
        for name in (
            'position_points',
            'partial_points',
            'pole_points',
            'fastest_lap_points',
            'podium_bonus',
            'total_points',
        ):
            value = data.get(name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"Scoring breakdown field '{name}' must be a non-negative integer.")
            totals[name] = value

        raw_details = data.get('details', [])
        if not isinstance(raw_details, list):
            raise ValueError("Scoring breakdown details must be a list.")

        details = []
        for entry in raw_details:
            if not isinstance(entry, Mapping) or entry.get('type') not in DetailType.ALL:
                raise ValueError(f"Invalid scoring detail entry: {entry!r}")
            try:
                detail = PositionDetail(
                    predicted=int(entry['predicted']),
                    actual=None if entry.get('actual') is None else int(entry['actual']),
                    driver_id=str(entry.get('driver_id') or ''),
                    points=int(entry.get('points', 0)),
                    type=entry['type'],
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"Invalid scoring detail entry: {entry!r}") from exc
            details.append(detail)

        breakdown = cls(details=tuple(details), **totals)
        expected_total = (
            breakdown.position_points
            + breakdown.partial_points
            + breakdown.pole_points
            + breakdown.fastest_lap_points
            + breakdown.podium_bonus
        )
        if breakdown.total_points != expected_total:
            raise ValueError("Scoring breakdown total does not match its components.")
        return breakdown


def _actual_positions(results: RaceResults) -> dict[str, int]:
    actual: dict[str, int] = {}
    for index, driver_id in enumerate(results.positions[:TOP_TEN_SIZE], start=1):
        if driver_id and driver_id not in actual:
            actual[driver_id] = index
    return actual


def calculate_podium_bonus(
    predicted: Sequence[str],
    actual: Sequence[str],
    table: ScoringTable = DEFAULT_SCORING_TABLE,
) -> int:
    """Return the exact-order bonus, the any-order bonus, or zero. Never both."""

    predicted_podium = list(predicted[:PODIUM_SIZE])
    actual_podium = list(actual[:PODIUM_SIZE])
    if len(predicted_podium) < PODIUM_SIZE or len(actual_podium) < PODIUM_SIZE:
        return 0
    if not all(predicted_podium) or not all(actual_podium):
        return 0

    if predicted_podium == actual_podium:
        return table.podium_exact_order_bonus
    if len(set(predicted_podium)) == PODIUM_SIZE and set(predicted_podium) == set(actual_podium):
        return table.podium_any_order_bonus
    return 0


def calculate_score(
    prediction: PredictionPicks,
    results: RaceResults,
    table: ScoringTable = DEFAULT_SCORING_TABLE,
) -> ScoringBreakdown:
    """Score ``prediction`` against the official ``results``.

    Exact hits accumulate into ``position_points``; drivers predicted at the
    wrong slot but inside the partial credit window accumulate into
    ``partial_points``. Empty slots never match.
    """

    actual_positions = _actual_positions(results)
    position_points = 0
    partial_points = 0
    details: List[PositionDetail] = []

    for predicted, driver_id in enumerate(prediction.positions[:TOP_TEN_SIZE], start=1):
        actual = actual_positions.get(driver_id) if driver_id else None
        points = 0
        detail_type = DetailType.NONE

        if actual == predicted:
            points = table.exact_position_points.get(predicted, 0)
            detail_type = DetailType.EXACT
            position_points += points
        elif actual is not None:
            detail_type = DetailType.PARTIAL
            if predicted <= table.partial_credit_depth and actual <= table.partial_credit_depth:
                points = table.partial_position_points.get(predicted, 0)
                partial_points += points

        details.append(
            PositionDetail(
                predicted=predicted,
                actual=actual,
                driver_id=driver_id or '',
                points=points,
                type=detail_type,
            )
        )

    pole_points = table.pole_points if prediction.pole and prediction.pole == results.pole else 0
    fastest_lap_points = (
        table.fastest_lap_points
        if prediction.fastest_lap and prediction.fastest_lap == results.fastest_lap
        else 0
    )
    podium_bonus = calculate_podium_bonus(prediction.positions, results.positions, table)

    return ScoringBreakdown(
        position_points=position_points,
        partial_points=partial_points,
        pole_points=pole_points,
        fastest_lap_points=fastest_lap_points,
        podium_bonus=podium_bonus,
        total_points=position_points + partial_points + pole_points + fastest_lap_points + podium_bonus,
        details=tuple(details),
    )


def max_possible_points(table: ScoringTable = DEFAULT_SCORING_TABLE) -> int:
    """Upper bound of ``total_points`` for any prediction under ``table``."""

    per_position = sum(
        max(
            table.exact_position_points.get(position, 0),
            table.partial_position_points.get(position, 0),
        )
        for position in range(1, TOP_TEN_SIZE + 1)
    )
    return (
        per_position
        + table.pole_points
        + table.fastest_lap_points
        + max(table.podium_exact_order_bonus, table.podium_any_order_bonus)
    )


def validate_prediction(top_ten: Any) -> List[str]:
    """Return validation errors for a submitted top ten; empty when valid."""

    if not isinstance(top_ten, (list, tuple)):
        return ["top_ten must be a list of driver references"]

    errors = []
    if len(top_ten) != TOP_TEN_SIZE:
        errors.append(f"top_ten must contain exactly {TOP_TEN_SIZE} entries")
    if any(not isinstance(driver, str) for driver in top_ten):
        errors.append("driver references must be strings")
        return errors

    if any(not driver.strip() for driver in top_ten):
        errors.append("each position must name a driver")
    if len(set(top_ten)) != len(top_ten):
        errors.append("each driver can only appear once")
    return errors


def format_breakdown(breakdown: ScoringBreakdown, table: ScoringTable = DEFAULT_SCORING_TABLE) -> str:
    lines = []
    if breakdown.position_points:
        lines.append(f"Exact positions: {breakdown.position_points} pts")
    if breakdown.partial_points:
        lines.append(f"Partial podium: {breakdown.partial_points} pts")
    if breakdown.pole_points:
        lines.append(f"Pole position: {breakdown.pole_points} pts")
    if breakdown.fastest_lap_points:
        lines.append(f"Fastest lap: {breakdown.fastest_lap_points} pts")
    if breakdown.podium_bonus:
        kind = 'exact order' if breakdown.podium_bonus == table.podium_exact_order_bonus else 'any order'
        lines.append(f"Podium bonus ({kind}): {breakdown.podium_bonus} pts")
    lines.append(f"Total: {breakdown.total_points} pts")
    return '\n'.join(lines)

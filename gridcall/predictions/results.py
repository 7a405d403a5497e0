"""Parsing of stored session result payloads."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .scoring import TOP_TEN_SIZE, RaceResults


class MalformedResults(ValueError):
    """Raised when a session's result payload cannot be turned into RaceResults."""


def _driver_ref(value: Any, field_name: str) -> Optional[str]:
    if value is None or value == '':
        return None
    if isinstance(value, Mapping):
        value = value.get('driverId')
        if value is None or value == '':
            return None
    if not isinstance(value, str):
        raise MalformedResults(f"'{field_name}' must reference a driver id, got {value!r}")
    return value


def parse_race_results(payload: Any) -> RaceResults:
    """Turn a stored results payload into :class:`RaceResults`.

    The payload has the shape::

        {
            "positions": [{"position": 1, "driverId": "verstappen"}, ...],
            "pole": "verstappen",
            "fastestLap": {"driverId": "norris"}
        }

    Positions are ordered by their ``position`` value and truncated to the
    top ten.
    """

    if not isinstance(payload, Mapping):
        raise MalformedResults(f"Results payload must be an object, got {type(payload).__name__}")

    raw_positions = payload.get('positions')
    if not isinstance(raw_positions, list) or not raw_positions:
        raise MalformedResults("Results payload has no 'positions' list")

    entries = []
    for entry in raw_positions:
        if not isinstance(entry, Mapping):
            raise MalformedResults(f"Invalid position entry: {entry!r}")
        position = entry.get('position')
        driver_id = entry.get('driverId')
        try:
            position = int(position)
        except (TypeError, ValueError) as exc:
            raise MalformedResults(f"Invalid position value: {position!r}") from exc
        if position < 1:
            raise MalformedResults(f"Invalid position value: {position!r}")
        if not isinstance(driver_id, str) or not driver_id:
            raise MalformedResults(f"Position {position} has no driverId")
        entries.append((position, driver_id))

    entries.sort(key=lambda item: item[0])
    positions = tuple(driver_id for _, driver_id in entries[:TOP_TEN_SIZE])
    if len(set(positions)) != len(positions):
        raise MalformedResults("A driver appears more than once in the results")

    return RaceResults(
        positions=positions,
        pole=_driver_ref(payload.get('pole'), 'pole'),
        fastest_lap=_driver_ref(payload.get('fastestLap'), 'fastestLap'),
    )

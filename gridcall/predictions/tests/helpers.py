"""Shared fixtures for prediction tests."""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from gridcall.predictions.models import Prediction, Race, RaceSession, SessionKind

User = get_user_model()

TOP_TEN = [
    'max_verstappen', 'norris', 'leclerc', 'piastri', 'sainz',
    'hamilton', 'russell', 'perez', 'alonso', 'stroll',
]


def results_payload(drivers=TOP_TEN, pole='max_verstappen', fastest_lap='norris'):
    return {
        'positions': [{'position': index, 'driverId': driver} for index, driver in enumerate(drivers, 1)],
        'pole': pole,
        'fastestLap': {'driverId': fastest_lap} if fastest_lap else None,
    }


def create_user(username):
    return User.objects.create_user(username=username, email=f'{username}@example.com', password='testpass123')


def create_race(season=2024, round=1, name=None, race_start=None, completed=False, payload=None, sprint=False):
    """Create a race weekend with qualifying and race sessions.

    With ``completed`` the race session carries ``payload`` (or the default
    results) and is marked completed.
    """
    race_start = race_start or timezone.now() + timedelta(days=2)
    race = Race.objects.create(season=season, round=round, name=name or f'Grand Prix {season}-{round}')
    RaceSession.objects.create(race=race, kind=SessionKind.QUALIFYING, starts_at=race_start - timedelta(days=1))
    RaceSession.objects.create(
        race=race,
        kind=SessionKind.RACE,
        starts_at=race_start,
        completed=completed,
        results_json=(payload or results_payload()) if completed else None,
    )
    if sprint:
        RaceSession.objects.create(
            race=race,
            kind=SessionKind.SPRINT_QUALIFYING,
            starts_at=race_start - timedelta(days=2),
        )
        RaceSession.objects.create(
            race=race,
            kind=SessionKind.SPRINT,
            starts_at=race_start - timedelta(days=1, hours=4),
            completed=completed,
            results_json=(payload or results_payload()) if completed else None,
        )
    return race


def create_prediction(user, race, top_ten=TOP_TEN, pole='max_verstappen', fastest_lap='norris', **kwargs):
    return Prediction.objects.create(
        user=user,
        race=race,
        top_ten=list(top_ten),
        pole_pick=pole,
        fastest_lap_pick=fastest_lap,
        **kwargs,
    )

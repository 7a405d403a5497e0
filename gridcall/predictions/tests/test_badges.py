"""Tests for badge evaluation."""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from gridcall.predictions.badges import BADGE_DEFINITIONS, BadgeEvaluator
from gridcall.predictions.models import BadgeUnlock, Notification, Prediction
from gridcall.predictions.scoring import ScoringBreakdown
from gridcall.predictions.scoring_jobs import ScoringJobRunner

from .helpers import TOP_TEN, create_prediction, create_race, create_user

EMPTY = [''] * 10


class BadgeEvaluatorTest(TestCase):
    def setUp(self):
        self.user = create_user('alice')

    def _completed_races(self, count, season=2024):
        now = timezone.now()
        return [
            create_race(season=season, round=round_number, race_start=now - timedelta(days=7 * (count - round_number) + 1), completed=True)
            for round_number in range(1, count + 1)
        ]

    def _badges(self):
        return set(BadgeUnlock.objects.filter(user=self.user).values_list('badge_code', flat=True))

    def test_perfect_prediction_badges(self):
        race = self._completed_races(1)[0]
        create_prediction(self.user, race)

        ScoringJobRunner().run()

        self.assertEqual(
            self._badges(),
            {'FIRST_PREDICTION', 'PERFECT_PODIUM', 'PERFECT_WEEKEND', 'TOP_10_PERFECT'},
        )
        notification = Notification.objects.get(
            user=self.user,
            kind=Notification.Kind.BADGE_UNLOCKED,
            data__badge_code='TOP_10_PERFECT',
        )
        self.assertIn(BADGE_DEFINITIONS['TOP_10_PERFECT'].name, notification.title)

    def test_evaluation_is_idempotent(self):
        race = self._completed_races(1)[0]
        prediction = create_prediction(self.user, race)
        ScoringJobRunner().run()
        unlocks = BadgeUnlock.objects.count()
        notifications = Notification.objects.count()

        awarded = BadgeEvaluator().evaluate(self.user.pk, race.pk, prediction.pk)

        self.assertEqual(awarded, [])
        self.assertEqual(BadgeUnlock.objects.count(), unlocks)
        self.assertEqual(Notification.objects.count(), notifications)

    def test_unscored_prediction_unlocks_nothing(self):
        race = self._completed_races(1)[0]
        prediction = create_prediction(self.user, race)

        self.assertEqual(BadgeEvaluator().evaluate(self.user.pk, race.pk, prediction.pk), [])
        self.assertFalse(BadgeUnlock.objects.exists())

    def test_malformed_stored_breakdown_is_ignored(self):
        race = self._completed_races(1)[0]
        prediction = create_prediction(self.user, race)
        Prediction.objects.filter(pk=prediction.pk).update(
            points=0,
            points_breakdown={**ScoringBreakdown().to_dict(), 'details': [{'predicted': None, 'type': 'none'}]},
        )

        with self.assertLogs('gridcall.predictions.badges', level='WARNING'):
            awarded = BadgeEvaluator().evaluate(self.user.pk, race.pk, prediction.pk)

        self.assertEqual(awarded, [])
        self.assertFalse(BadgeUnlock.objects.exists())

    def test_missed_podium_only_unlocks_first_prediction(self):
        race = self._completed_races(1)[0]
        create_prediction(self.user, race, top_ten=list(reversed(TOP_TEN)), pole=None, fastest_lap=None)

        ScoringJobRunner().run()

        self.assertEqual(self._badges(), {'FIRST_PREDICTION'})

    def test_season_pole_and_fastest_lap_badges(self):
        for race in self._completed_races(5):
            create_prediction(self.user, race, top_ten=EMPTY)

        ScoringJobRunner().run()

        badges = self._badges()
        self.assertIn('POLE_MASTER', badges)
        self.assertIn('FASTEST_LAP_EXPERT', badges)
        self.assertIn('STREAK_3', badges)
        self.assertIn('STREAK_5', badges)
        self.assertNotIn('STREAK_10', badges)
        self.assertNotIn('PERFECT_PODIUM', badges)

    def test_four_correct_poles_are_not_enough(self):
        for race in self._completed_races(4):
            create_prediction(self.user, race, top_ten=EMPTY)

        ScoringJobRunner().run()

        self.assertNotIn('POLE_MASTER', self._badges())

    def test_streak_is_broken_by_missing_latest_race(self):
        races = self._completed_races(4)
        for race in races[:-1]:
            create_prediction(self.user, race, top_ten=EMPTY)

        ScoringJobRunner().run()

        self.assertNotIn('STREAK_3', self._badges())

    def test_oracle_after_three_perfect_podiums(self):
        for race in self._completed_races(3):
            create_prediction(self.user, race)

        ScoringJobRunner().run()

        self.assertIn('ORACLE', self._badges())

    def test_regular_needs_every_race_of_the_season(self):
        for race in self._completed_races(10):
            create_prediction(self.user, race, top_ten=EMPTY, pole=None, fastest_lap=None)

        ScoringJobRunner().run()

        self.assertIn('REGULAR', self._badges())
        self.assertIn('STREAK_10', self._badges())

    def test_badges_are_per_user(self):
        race = self._completed_races(1)[0]
        other = create_user('bob')
        create_prediction(self.user, race)
        create_prediction(other, race)

        ScoringJobRunner().run()

        self.assertEqual(BadgeUnlock.objects.filter(badge_code='FIRST_PREDICTION').count(), 2)

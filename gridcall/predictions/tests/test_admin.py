"""Tests for the predictions admin."""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from gridcall.predictions.models import Prediction, ScoringJob
from gridcall.predictions.scoring_jobs import ScoringJobRunner

from .helpers import TOP_TEN, create_prediction, create_race, create_user


class PredictionAdminTests(TestCase):
    def setUp(self) -> None:
        self.admin_user = get_user_model().objects.create_superuser(
            username='admin',
            email='admin@example.com',
            password='password',
        )
        self.client = Client()
        self.client.force_login(self.admin_user)

        self.race = create_race(race_start=timezone.now() - timedelta(hours=3), completed=True)
        self.prediction = create_prediction(create_user('alice'), self.race)
        ScoringJobRunner().run()

    def test_changelist_renders(self):
        response = self.client.get(reverse('admin:predictions_prediction_changelist'))

        self.assertEqual(response.status_code, 200)

    def test_change_page_shows_breakdown(self):
        response = self.client.get(reverse('admin:predictions_prediction_change', args=[self.prediction.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Total: 166 pts')

    def test_change_page_survives_malformed_breakdown(self):
        Prediction.objects.filter(pk=self.prediction.pk).update(
            points_breakdown={**self._stored_breakdown(), 'details': [{'type': 'none'}]},
        )

        response = self.client.get(reverse('admin:predictions_prediction_change', args=[self.prediction.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid breakdown')

    def _stored_breakdown(self):
        return Prediction.objects.get(pk=self.prediction.pk).points_breakdown

    def test_reset_and_rescore_action(self):
        self.race.sessions.filter(kind='RACE').update(
            results_json={
                'positions': [
                    {'position': index, 'driverId': driver}
                    for index, driver in enumerate(reversed(TOP_TEN), 1)
                ],
            }
        )

        response = self.client.post(
            reverse('admin:predictions_prediction_changelist'),
            {'action': 'reset_and_rescore', '_selected_action': [self.prediction.pk]},
            follow=True,
        )

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'reset 1, scored 1')
        self.prediction.refresh_from_db()
        self.assertLess(self.prediction.points, 166)

    def test_scoring_jobs_cannot_be_added(self):
        response = self.client.get(reverse('admin:predictions_scoringjob_add'))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(ScoringJob.objects.count(), 1)

    def test_reset_without_results_warns(self):
        self.race.sessions.filter(kind='RACE').update(completed=False)

        response = self.client.post(
            reverse('admin:predictions_prediction_changelist'),
            {'action': 'reset_and_rescore', '_selected_action': [self.prediction.pk]},
            follow=True,
        )

        self.assertContains(response, 'could not re-score')
        self.assertIsNone(Prediction.objects.get(pk=self.prediction.pk).points)

"""Tests for notification records."""

from django.test import TestCase

from gridcall.predictions.models import Notification
from gridcall.predictions.notifications import NotificationDispatcher

from .helpers import create_race, create_user


class NotificationDispatcherTest(TestCase):
    def setUp(self):
        self.dispatcher = NotificationDispatcher()
        self.user = create_user('alice')
        self.race = create_race(name='Italian Grand Prix')

    def test_notify_scored(self):
        notification = self.dispatcher.notify_scored(self.user.pk, self.race.pk, 'SPRINT', 42)

        self.assertEqual(notification.kind, Notification.Kind.SCORED)
        self.assertEqual(notification.title, 'Italian Grand Prix Sprint scored')
        self.assertIn('42 points', notification.message)
        self.assertEqual(notification.data, {'session_type': 'SPRINT', 'total_points': 42})
        self.assertFalse(notification.is_read)

    def test_notify_badge_unlocked(self):
        notification = self.dispatcher.notify_badge_unlocked(
            self.user.pk,
            'ORACLE',
            self.race.pk,
            badge_name='Oracle',
        )

        self.assertEqual(notification.kind, Notification.Kind.BADGE_UNLOCKED)
        self.assertEqual(notification.title, 'Badge unlocked: Oracle')
        self.assertEqual(notification.race, self.race)
        self.assertEqual(notification.data, {'badge_code': 'ORACLE'})

from __future__ import annotations

from django.conf import settings
from django.db import models


class SessionKind(models.TextChoices):
    FP1 = 'FP1', 'Free Practice 1'
    FP2 = 'FP2', 'Free Practice 2'
    FP3 = 'FP3', 'Free Practice 3'
    SPRINT_QUALIFYING = 'SPRINT_QUALIFYING', 'Sprint Qualifying'
    SPRINT = 'SPRINT', 'Sprint'
    QUALIFYING = 'QUALIFYING', 'Qualifying'
    RACE = 'RACE', 'Race'


class ScoredSessionType(models.TextChoices):
    """Session types users can submit predictions for."""

    RACE = 'RACE', 'Race'
    SPRINT = 'SPRINT', 'Sprint'


class Race(models.Model):
    """A race weekend within a season."""

    season = models.PositiveSmallIntegerField()
    round = models.PositiveSmallIntegerField()
    name = models.CharField(max_length=200)
    circuit_name = models.CharField(max_length=200, blank=True)
    country = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['season', 'round']
        verbose_name = 'Race'
        verbose_name_plural = 'Races'
        constraints = [
            models.UniqueConstraint(fields=['season', 'round'], name='unique_race_per_round'),
        ]

    def __str__(self) -> str:
        return f"{self.season} R{self.round} {self.name}"


class RaceSession(models.Model):
    """
    One on-track session of a race weekend.

    The sessions of a race form its schedule. Official results are stored as
    the raw payload in ``results_json`` once the session has completed.
    """

    race = models.ForeignKey(
        Race,
        on_delete=models.CASCADE,
        related_name='sessions',
    )
    kind = models.CharField(max_length=20, choices=SessionKind.choices)
    starts_at = models.DateTimeField()
    completed = models.BooleanField(default=False)
    results_json = models.JSONField(
        null=True,
        blank=True,
        help_text='Official results payload: {"positions": [{"position", "driverId"}], "pole", "fastestLap"}',
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['race', 'starts_at']
        verbose_name = 'Race session'
        verbose_name_plural = 'Race sessions'
        constraints = [
            models.UniqueConstraint(fields=['race', 'kind'], name='unique_session_kind_per_race'),
        ]
        indexes = [
            models.Index(fields=['completed', 'kind'], name='session_completed_kind_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.race.name} {self.get_kind_display()}"


class Prediction(models.Model):
    """A user's forecast for the top ten, pole and fastest lap of a session."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='predictions',
    )
    race = models.ForeignKey(
        Race,
        on_delete=models.CASCADE,
        related_name='predictions',
    )
    session_type = models.CharField(
        max_length=10,
        choices=ScoredSessionType.choices,
        default=ScoredSessionType.RACE,
    )
    top_ten = models.JSONField(
        default=list,
        help_text='Ten driver references in predicted finishing order. Empty strings mark unfilled slots.',
    )
    pole_pick = models.CharField(max_length=100, null=True, blank=True)
    fastest_lap_pick = models.CharField(max_length=100, null=True, blank=True)
    points = models.IntegerField(
        null=True,
        blank=True,
        help_text='Total points awarded. Empty until the session has been scored.',
    )
    points_breakdown = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['race', 'session_type', 'user']
        verbose_name = 'Prediction'
        verbose_name_plural = 'Predictions'
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'race', 'session_type'],
                name='unique_prediction_per_session',
            ),
        ]
        indexes = [
            models.Index(fields=['race', 'session_type', 'points'], name='prediction_unscored_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.user} - {self.race.name} ({self.session_type})"

    @property
    def is_scored(self) -> bool:
        return self.points is not None


class ScoringJob(models.Model):
    """Tracks the latest scoring run for one (race, session type)."""

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        RUNNING = 'RUNNING', 'Running'
        COMPLETED = 'COMPLETED', 'Completed'
        FAILED = 'FAILED', 'Failed'

    race = models.ForeignKey(
        Race,
        on_delete=models.CASCADE,
        related_name='scoring_jobs',
    )
    session_type = models.CharField(max_length=10, choices=ScoredSessionType.choices)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
    )
    scored_count = models.PositiveIntegerField(default=0)
    error_count = models.PositiveIntegerField(default=0)
    total_count = models.PositiveIntegerField(default=0)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Scoring job'
        verbose_name_plural = 'Scoring jobs'
        constraints = [
            models.UniqueConstraint(
                fields=['race', 'session_type'],
                name='unique_scoring_job_per_session',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.race.name} {self.session_type}: {self.status}"


class BadgeUnlock(models.Model):
    """An achievement badge unlocked by a user. Each badge unlocks once per user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='badge_unlocks',
    )
    badge_code = models.CharField(max_length=50)
    race = models.ForeignKey(
        Race,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='badge_unlocks',
        help_text='Race whose scoring unlocked the badge, if any',
    )
    unlocked_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-unlocked_at', 'badge_code']
        verbose_name = 'Badge unlock'
        verbose_name_plural = 'Badge unlocks'
        constraints = [
            models.UniqueConstraint(fields=['user', 'badge_code'], name='unique_badge_per_user'),
        ]
        indexes = [
            models.Index(fields=['badge_code'], name='badge_unlock_code_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.user}: {self.badge_code}"


class Notification(models.Model):
    """In-app notification shown to a user."""

    class Kind(models.TextChoices):
        SCORED = 'SCORED', 'Prediction scored'
        BADGE_UNLOCKED = 'BADGE_UNLOCKED', 'Badge unlocked'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    kind = models.CharField(max_length=20, choices=Kind.choices)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    race = models.ForeignKey(
        Race,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications',
    )
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Notification'
        verbose_name_plural = 'Notifications'
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.user}: {self.title}"

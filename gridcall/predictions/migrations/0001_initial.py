from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


SESSION_KIND_CHOICES = [
    ('FP1', 'Free Practice 1'),
    ('FP2', 'Free Practice 2'),
    ('FP3', 'Free Practice 3'),
    ('SPRINT_QUALIFYING', 'Sprint Qualifying'),
    ('SPRINT', 'Sprint'),
    ('QUALIFYING', 'Qualifying'),
    ('RACE', 'Race'),
]

SCORED_SESSION_TYPE_CHOICES = [('RACE', 'Race'), ('SPRINT', 'Sprint')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Race',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('season', models.PositiveSmallIntegerField()),
                ('round', models.PositiveSmallIntegerField()),
                ('name', models.CharField(max_length=200)),
                ('circuit_name', models.CharField(blank=True, max_length=200)),
                ('country', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Race',
                'verbose_name_plural': 'Races',
                'ordering': ['season', 'round'],
                'constraints': [
                    models.UniqueConstraint(fields=('season', 'round'), name='unique_race_per_round'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RaceSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=SESSION_KIND_CHOICES, max_length=20)),
                ('starts_at', models.DateTimeField()),
                ('completed', models.BooleanField(default=False)),
                (
                    'results_json',
                    models.JSONField(
                        blank=True,
                        null=True,
                        help_text='Official results payload: {"positions": [{"position", "driverId"}], "pole", "fastestLap"}',
                    ),
                ),
                ('updated_at', models.DateTimeField(auto_now=True)),
                (
                    'race',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='sessions',
                        to='predictions.race',
                    ),
                ),
            ],
            options={
                'verbose_name': 'Race session',
                'verbose_name_plural': 'Race sessions',
                'ordering': ['race', 'starts_at'],
                'indexes': [
                    models.Index(fields=['completed', 'kind'], name='session_completed_kind_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('race', 'kind'), name='unique_session_kind_per_race'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Prediction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                (
                    'session_type',
                    models.CharField(choices=SCORED_SESSION_TYPE_CHOICES, default='RACE', max_length=10),
                ),
                (
                    'top_ten',
                    models.JSONField(
                        default=list,
                        help_text='Ten driver references in predicted finishing order. Empty strings mark unfilled slots.',
                    ),
                ),
                ('pole_pick', models.CharField(blank=True, max_length=100, null=True)),
                ('fastest_lap_pick', models.CharField(blank=True, max_length=100, null=True)),
                (
                    'points',
                    models.IntegerField(
                        blank=True,
                        null=True,
                        help_text='Total points awarded. Empty until the session has been scored.',
                    ),
                ),
                ('points_breakdown', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                (
                    'race',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='predictions',
                        to='predictions.race',
                    ),
                ),
                (
                    'user',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='predictions',
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                'verbose_name': 'Prediction',
                'verbose_name_plural': 'Predictions',
                'ordering': ['race', 'session_type', 'user'],
                'indexes': [
                    models.Index(fields=['race', 'session_type', 'points'], name='prediction_unscored_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('user', 'race', 'session_type'),
                        name='unique_prediction_per_session',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ScoringJob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_type', models.CharField(choices=SCORED_SESSION_TYPE_CHOICES, max_length=10)),
                (
                    'status',
                    models.CharField(
                        choices=[
                            ('PENDING', 'Pending'),
                            ('RUNNING', 'Running'),
                            ('COMPLETED', 'Completed'),
                            ('FAILED', 'Failed'),
                        ],
                        default='PENDING',
                        max_length=10,
                    ),
                ),
                ('scored_count', models.PositiveIntegerField(default=0)),
                ('error_count', models.PositiveIntegerField(default=0)),
                ('total_count', models.PositiveIntegerField(default=0)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('finished_at', models.DateTimeField(blank=True, null=True)),
                ('error_message', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                (
                    'race',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='scoring_jobs',
                        to='predictions.race',
                    ),
                ),
            ],
            options={
                'verbose_name': 'Scoring job',
                'verbose_name_plural': 'Scoring jobs',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('race', 'session_type'),
                        name='unique_scoring_job_per_session',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='BadgeUnlock',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('badge_code', models.CharField(max_length=50)),
                ('unlocked_at', models.DateTimeField(auto_now_add=True)),
                (
                    'race',
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        help_text='Race whose scoring unlocked the badge, if any',
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name='badge_unlocks',
                        to='predictions.race',
                    ),
                ),
                (
                    'user',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='badge_unlocks',
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                'verbose_name': 'Badge unlock',
                'verbose_name_plural': 'Badge unlocks',
                'ordering': ['-unlocked_at', 'badge_code'],
                'indexes': [
                    models.Index(fields=['badge_code'], name='badge_unlock_code_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'badge_code'), name='unique_badge_per_user'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                (
                    'kind',
                    models.CharField(
                        choices=[('SCORED', 'Prediction scored'), ('BADGE_UNLOCKED', 'Badge unlocked')],
                        max_length=20,
                    ),
                ),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField(blank=True)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                (
                    'race',
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name='notifications',
                        to='predictions.race',
                    ),
                ),
                (
                    'user',
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name='notifications',
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
                ],
            },
        ),
    ]

"""Predictions app configuration."""

from django.apps import AppConfig


class PredictionsConfig(AppConfig):
    """Configuration for the race predictions app."""

    name = 'gridcall.predictions'
    verbose_name = 'Race Predictions'
    default_auto_field = 'django.db.models.BigAutoField'

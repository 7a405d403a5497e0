"""Ergast app configuration."""

from django.apps import AppConfig


class ErgastConfig(AppConfig):
    """Configuration for the Ergast results sync app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gridcall.ergast'
    verbose_name = 'Ergast results sync'

"""
Management command to fetch official race and sprint results from Ergast.

Stores the normalised classification on the matching RaceSession and marks it
completed, which makes the session visible to ``score_predictions``.
"""

from __future__ import annotations

import logging

import requests
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from gridcall.ergast.client import ErgastError, build_ergast_client
from gridcall.predictions.models import RaceSession, ScoredSessionType

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Fetch race and sprint results from the Ergast API and store them on their sessions'

    def add_arguments(self, parser):
        parser.add_argument(
            '--season',
            type=int,
            required=True,
            help='Season to sync',
        )
        parser.add_argument(
            '--round',
            type=int,
            help='Only sync this round',
        )
        parser.add_argument(
            '--session-type',
            choices=ScoredSessionType.values,
            help='Only sync this session type (default: race and sprint)',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Fetch again for sessions that already have results',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be fetched without making changes',
        )

    def handle(self, *args, **options):
        season = options['season']
        session_types = [options['session_type']] if options.get('session_type') else ScoredSessionType.values

        sessions = RaceSession.objects.filter(
            race__season=season,
            kind__in=session_types,
            starts_at__lte=timezone.now(),
        ).select_related('race').order_by('race__round', 'starts_at')
        if options.get('round') is not None:
            sessions = sessions.filter(race__round=options['round'])
        if not options['force']:
            sessions = sessions.filter(results_json__isnull=True)

        if not sessions.exists():
            self.stdout.write('No sessions found that need results')
            return

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('DRY RUN - No changes will be made'))
            for session in sessions:
                self.stdout.write(f'  Would fetch {session}')
            return

        client = build_ergast_client()
        synced = 0
        pending = 0
        errors = 0

        for session in sessions:
            try:
                payload = client.get_session_results(season, session.race.round, session.kind)
            except (requests.RequestException, ErgastError) as e:
                errors += 1
                logger.error(f'Failed to fetch results for {session}: {e}')
                self.stdout.write(self.style.ERROR(f'  ✗ {session}: {e}'))
                continue

            if payload is None:
                pending += 1
                self.stdout.write(f'  {session}: no results published yet')
                continue

            session.results_json = payload
            session.completed = True
            session.save(update_fields=['results_json', 'completed', 'updated_at'])
            synced += 1
            self.stdout.write(f'  ✓ {session}: {len(payload["positions"])} classified')

        self.stdout.write('')
        summary = f'Synced {synced} sessions, {pending} pending, {errors} errors'
        if errors and not synced:
            raise CommandError(summary)
        if errors:
            self.stdout.write(self.style.WARNING(summary))
        else:
            self.stdout.write(self.style.SUCCESS(summary))

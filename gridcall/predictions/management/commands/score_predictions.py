"""
Management command to score predictions for completed race and sprint sessions.

Designed to be run periodically via cron (every 15 minutes during race
weekends is plenty). Running it again after a session has been scored does
nothing, so overlapping schedules are harmless.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from gridcall.predictions.models import Prediction, ScoredSessionType
from gridcall.predictions.results_source import SessionNotScoreable
from gridcall.predictions.scoring_jobs import ScoringJobRunner, ScoringRunResult, SessionScoringResult

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Score predictions for completed race and sprint sessions'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show which sessions would be scored without making changes',
        )
        parser.add_argument(
            '--race',
            type=int,
            help='Score only this race (requires --session-type)',
        )
        parser.add_argument(
            '--session-type',
            choices=ScoredSessionType.values,
            help='Session type to score together with --race',
        )
        parser.add_argument(
            '--reset',
            action='store_true',
            help='Clear existing scores of the selected session before scoring it again',
        )
        parser.add_argument(
            '--force-automation',
            action='store_true',
            help='Score even if automation is disabled via AUTO_SCORE_PREDICTIONS',
        )

    def handle(self, *args, **options):
        race_id = options.get('race')
        session_type = options.get('session_type')
        dry_run = options['dry_run']

        if (race_id is None) != (session_type is None):
            raise CommandError('--race and --session-type must be used together')
        if options['reset'] and race_id is None:
            raise CommandError('--reset requires --race and --session-type')

        if race_id is None and not options['force_automation'] and not self._is_automation_enabled():
            self.stdout.write(
                self.style.WARNING('Scoring is disabled via AUTO_SCORE_PREDICTIONS environment variable')
            )
            return

        runner = ScoringJobRunner()

        if dry_run:
            self._show_dry_run_summary(runner, race_id, session_type)
            return

        if race_id is not None:
            self._score_single_session(runner, race_id, session_type, reset=options['reset'])
            return

        try:
            result = runner.run()
        except Exception as e:
            logger.exception(f'Error scoring predictions: {e}')
            self.stdout.write(self.style.ERROR(f'✗ Error scoring predictions: {e}'))
            raise CommandError(f'Scoring failed: {e}')

        self._show_results(result)

    def _is_automation_enabled(self) -> bool:
        return getattr(settings, 'AUTO_SCORE_PREDICTIONS', True)

    def _score_single_session(self, runner: ScoringJobRunner, race_id: int, session_type: str, reset: bool):
        if reset:
            cleared = runner.reset_scores(race_id, session_type)
            self.stdout.write(f'Reset {cleared} scored predictions for race {race_id} ({session_type})')

        try:
            session_result = runner.run_session(race_id, session_type)
        except SessionNotScoreable as e:
            raise CommandError(str(e))

        self._show_results(ScoringRunResult(sessions=[session_result]))

    def _show_dry_run_summary(self, runner: ScoringJobRunner, race_id, session_type):
        self.stdout.write(self.style.WARNING('DRY RUN - No changes will be made'))
        self.stdout.write('')

        if race_id is not None:
            try:
                sessions = [runner.results_source.get_session(race_id, session_type)]
            except SessionNotScoreable as e:
                raise CommandError(str(e))
        else:
            sessions = runner.discover()

        if not sessions:
            self.stdout.write('No sessions found that need scoring')
            return

        total = 0
        for session in sessions:
            count = Prediction.objects.filter(
                race_id=session.race_id,
                session_type=session.session_type,
                points__isnull=True,
            ).count()
            total += count
            self.stdout.write(f'  {session.race_name} {session.session_type} - {count} unscored predictions')

        self.stdout.write('')
        self.stdout.write(f'Would score {total} predictions across {len(sessions)} sessions')

    def _show_results(self, result: ScoringRunResult):
        if not result.processed:
            self.stdout.write('No sessions found that need scoring')
            return

        for session_result in result.sessions:
            self.stdout.write(self._describe_session(session_result))

        self.stdout.write('')
        if result.failed_sessions or result.total_errors:
            self.stdout.write(
                self.style.WARNING(
                    f'Processed {result.processed} sessions with problems. '
                    f'Scored {result.total_scored} predictions, {result.total_errors} errors, '
                    f'{len(result.failed_sessions)} failed sessions.'
                )
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'✓ Processed {result.processed} sessions. Scored {result.total_scored} predictions.'
                )
            )

    def _describe_session(self, session_result: SessionScoringResult) -> str:
        line = (
            f'  Race {session_result.race_id} {session_result.session_type}: {session_result.status} '
            f'(scored {session_result.scored}, errors {session_result.errors}'
        )
        if session_result.followup_errors:
            line += f', follow-up errors {session_result.followup_errors}'
        line += ')'
        if session_result.error:
            line += f' - {session_result.error}'
        return line

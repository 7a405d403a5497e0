"""Batch scoring of predictions for completed sessions.

The runner is safe to call repeatedly (e.g. from cron every 15 minutes):
only predictions without points are scored, and each prediction moves from
unscored to scored at most once.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .badges import BadgeEvaluator
from .models import Prediction, ScoringJob
from .notifications import NotificationDispatcher
from .prediction_service import PredictionRepository
from .results import MalformedResults, parse_race_results
from .results_source import CompletedSession, ResultsSource
from .scoring import (
    DEFAULT_SCORING_TABLE,
    PredictionPicks,
    RaceResults,
    ScoringBreakdown,
    ScoringTable,
    calculate_score,
)

logger = logging.getLogger(__name__)


class ScoringFailure(Exception):
    """An unexpected error while scoring a single prediction."""

    def __init__(self, prediction_id: int, cause: BaseException) -> None:
        self.prediction_id = prediction_id
        self.cause = cause
        super().__init__(f"Failed to score prediction {prediction_id}: {cause}")


class JobObserver:
    """Receives scoring job lifecycle transitions. The base class ignores them."""

    def created(self, job: ScoringJob) -> None:
        pass

    def running(self, job: ScoringJob) -> None:
        pass

    def progress(self, job: ScoringJob, scored: int, total: int) -> None:
        pass

    def completed(self, job: ScoringJob, scored: int, errors: int) -> None:
        pass

    def failed(self, job: ScoringJob, reason: str) -> None:
        pass


class LoggingJobObserver(JobObserver):
    def created(self, job: ScoringJob) -> None:
        logger.info("Scoring job %s created for race %s (%s)", job.pk, job.race_id, job.session_type)

    def running(self, job: ScoringJob) -> None:
        logger.info("Scoring job %s running", job.pk)

    def progress(self, job: ScoringJob, scored: int, total: int) -> None:
        logger.debug("Scoring job %s progress: %d/%d", job.pk, scored, total)

    def completed(self, job: ScoringJob, scored: int, errors: int) -> None:
        logger.info("Scoring job %s completed: %d scored, %d errors", job.pk, scored, errors)

    def failed(self, job: ScoringJob, reason: str) -> None:
        logger.error("Scoring job %s failed: %s", job.pk, reason)


@dataclass
class SessionScoringResult:
    """Outcome of scoring one (race, session type)."""

    race_id: int
    session_type: str
    status: str
    job_id: Optional[int] = None
    scored: int = 0
    errors: int = 0
    followup_errors: int = 0
    skipped: int = 0
    error: str = ''

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScoringRunResult:
    """Summary of one scoring run across all discovered sessions."""

    sessions: List[SessionScoringResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.sessions)

    @property
    def total_scored(self) -> int:
        return sum(result.scored for result in self.sessions)

    @property
    def total_errors(self) -> int:
        return sum(result.errors for result in self.sessions)

    @property
    def failed_sessions(self) -> List[SessionScoringResult]:
        return [result for result in self.sessions if result.status == ScoringJob.Status.FAILED]

    def as_dict(self) -> dict:
        return {
            'processed': self.processed,
            'sessions': [result.as_dict() for result in self.sessions],
        }


class ScoringJobRunner:
    """Scores outstanding predictions of completed sessions.

    Per prediction the order is always: persist the score, evaluate badges,
    send the notification. A failure while scoring one prediction is counted
    and the loop moves on; a failure in the follow-ups never undoes a score.
    """

    def __init__(
        self,
        *,
        repository: Optional[PredictionRepository] = None,
        results_source: Optional[ResultsSource] = None,
        badge_evaluator: Optional[BadgeEvaluator] = None,
        notifier: Optional[NotificationDispatcher] = None,
        observer: Optional[JobObserver] = None,
        table: ScoringTable = DEFAULT_SCORING_TABLE,
        max_sessions: Optional[int] = None,
    ) -> None:
        self.repository = repository or PredictionRepository()
        self.results_source = results_source or ResultsSource()
        self.notifier = notifier or NotificationDispatcher()
        self.badge_evaluator = badge_evaluator or BadgeEvaluator(notifier=self.notifier)
        self.observer = observer or LoggingJobObserver()
        self.table = table
        if max_sessions is None:
            max_sessions = getattr(settings, 'SCORING_MAX_SESSIONS_PER_RUN', None)
        self.max_sessions = max_sessions

    def discover(self) -> List[CompletedSession]:
        return self.results_source.get_completed_sessions(limit=self.max_sessions)

    def run(self) -> ScoringRunResult:
        """Score every completed session that still has unscored predictions."""

        result = ScoringRunResult()
        for session in self.discover():
            try:
                outcome = self.score_session(session)
            except Exception as exc:
                logger.exception("Scoring %s %s aborted", session.race_name, session.session_type)
                outcome = SessionScoringResult(
                    race_id=session.race_id,
                    session_type=session.session_type,
                    status=ScoringJob.Status.FAILED,
                    error=str(exc),
                )
            result.sessions.append(outcome)

        if result.processed:
            logger.info(
                "Scoring run finished: %d sessions, %d scored, %d errors",
                result.processed,
                result.total_scored,
                result.total_errors,
            )
        return result

    def run_session(self, race_id: int, session_type: str) -> SessionScoringResult:
        """Score one specific session on demand.

        Raises :class:`~.results_source.SessionNotScoreable` when the session
        is missing, not completed, or not a race or sprint.
        """

        return self.score_session(self.results_source.get_session(race_id, session_type))

    def reset_scores(self, race_id: int, session_type: str) -> int:
        return self.repository.reset_scores(race_id, session_type)

    def score_session(self, session: CompletedSession) -> SessionScoringResult:
        job = self._start_job(session)
        outcome = SessionScoringResult(
            race_id=session.race_id,
            session_type=session.session_type,
            status=job.status,
            job_id=job.pk,
        )

        try:
            predictions = self.repository.find_unscored(session.race_id, session.session_type)
            if not predictions:
                self._complete(job, outcome)
                logger.info("No predictions to score for %s %s", session.race_name, session.session_type)
                return outcome

            job.total_count = len(predictions)
            self._save_job(job, 'total_count')
            results = parse_race_results(session.payload)
        except MalformedResults as exc:
            logger.error("Malformed results for %s %s: %s", session.race_name, session.session_type, exc)
            self._fail(job, outcome, str(exc))
            return outcome
        except Exception as exc:
            logger.exception("Scoring job for %s %s failed before scoring", session.race_name, session.session_type)
            self._fail(job, outcome, str(exc))
            return outcome

        for prediction in predictions:
            try:
                breakdown = self._score_prediction(prediction, results)
            except ScoringFailure as exc:
                logger.error("%s", exc, exc_info=exc.cause)
                outcome.errors += 1
                self._progress(job, outcome)
                continue

            if breakdown is None:
                outcome.skipped += 1
                continue

            outcome.scored += 1
            self._progress(job, outcome)
            outcome.followup_errors += self._run_followups(prediction, session, breakdown)

        self._complete(job, outcome)
        logger.info(
            "Completed %s %s: %d scored, %d errors",
            session.race_name,
            session.session_type,
            outcome.scored,
            outcome.errors,
        )
        return outcome

    def _score_prediction(self, prediction: Prediction, results: RaceResults) -> Optional[ScoringBreakdown]:
        try:
            breakdown = calculate_score(PredictionPicks.from_prediction(prediction), results, self.table)
            with transaction.atomic():
                stored = self.repository.set_score(prediction.pk, breakdown)
        except Exception as exc:
            raise ScoringFailure(prediction.pk, exc) from exc

        if not stored:
            logger.info("Prediction %s was scored by another run; skipping", prediction.pk)
            return None
        return breakdown

    def _run_followups(self, prediction: Prediction, session: CompletedSession, breakdown: ScoringBreakdown) -> int:
        failures = 0
        try:
            with transaction.atomic():
                self.badge_evaluator.evaluate(prediction.user_id, session.race_id, prediction.pk)
        except Exception:
            failures += 1
            logger.warning("Badge evaluation failed for prediction %s", prediction.pk, exc_info=True)

        try:
            with transaction.atomic():
                self.notifier.notify_scored(
                    prediction.user_id,
                    session.race_id,
                    session.session_type,
                    breakdown.total_points,
                )
        except Exception:
            failures += 1
            logger.warning("Score notification failed for prediction %s", prediction.pk, exc_info=True)
        return failures

    def _start_job(self, session: CompletedSession) -> ScoringJob:
        job, _ = ScoringJob.objects.get_or_create(
            race_id=session.race_id,
            session_type=session.session_type,
        )
        job.status = ScoringJob.Status.PENDING
        job.scored_count = 0
        job.error_count = 0
        job.total_count = 0
        job.started_at = None
        job.finished_at = None
        job.error_message = ''
        self._save_job(
            job,
            'status',
            'scored_count',
            'error_count',
            'total_count',
            'started_at',
            'finished_at',
            'error_message',
        )
        self._emit('created', job)

        job.status = ScoringJob.Status.RUNNING
        job.started_at = timezone.now()
        self._save_job(job, 'status', 'started_at')
        self._emit('running', job)
        return job

    def _progress(self, job: ScoringJob, outcome: SessionScoringResult) -> None:
        job.scored_count = outcome.scored
        job.error_count = outcome.errors
        self._save_job(job, 'scored_count', 'error_count')
        self._emit('progress', job, outcome.scored, job.total_count)

    def _complete(self, job: ScoringJob, outcome: SessionScoringResult) -> None:
        job.status = ScoringJob.Status.COMPLETED
        job.scored_count = outcome.scored
        job.error_count = outcome.errors
        job.finished_at = timezone.now()
        self._save_job(job, 'status', 'scored_count', 'error_count', 'finished_at')
        outcome.status = job.status
        self._emit('completed', job, outcome.scored, outcome.errors)

    def _fail(self, job: ScoringJob, outcome: SessionScoringResult, reason: str) -> None:
        job.status = ScoringJob.Status.FAILED
        job.finished_at = timezone.now()
        job.error_message = reason
        self._save_job(job, 'status', 'finished_at', 'error_message')
        outcome.status = job.status
        outcome.error = reason
        self._emit('failed', job, reason)

    def _save_job(self, job: ScoringJob, *fields: str) -> None:
        job.save(update_fields=[*fields, 'updated_at'])

    def _emit(self, event: str, *args) -> None:
        try:
            getattr(self.observer, event)(*args)
        except Exception:
            logger.warning("Job observer failed handling '%s'", event, exc_info=True)

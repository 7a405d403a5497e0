from django.contrib import admin, messages
from django.http import HttpRequest
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import BadgeUnlock, Notification, Prediction, Race, RaceSession, ScoringJob
from .results_source import SessionNotScoreable
from .scoring import ScoringBreakdown, format_breakdown
from .scoring_jobs import ScoringJobRunner


class RaceSessionInline(admin.TabularInline):
    model = RaceSession
    extra = 0
    fields = ('kind', 'starts_at', 'completed', 'results_json')


@admin.register(Race)
class RaceAdmin(admin.ModelAdmin):
    list_display = ('name', 'season', 'round', 'circuit_name', 'country')
    list_filter = ('season',)
    search_fields = ('name', 'circuit_name', 'country')
    ordering = ('-season', 'round')
    inlines = [RaceSessionInline]


@admin.register(RaceSession)
class RaceSessionAdmin(admin.ModelAdmin):
    list_display = ('race', 'kind', 'starts_at', 'completed', 'has_results')
    list_filter = ('kind', 'completed', 'race__season')
    search_fields = ('race__name',)
    autocomplete_fields = ('race',)

    @admin.display(boolean=True, description='Results')
    def has_results(self, obj):
        return obj.results_json is not None


def _scored_sessions(queryset):
    return sorted(set(queryset.values_list('race_id', 'session_type')))


@admin.register(Prediction)
class PredictionAdmin(admin.ModelAdmin):
    list_display = ('user', 'race', 'session_type', 'points', 'pole_pick', 'fastest_lap_pick', 'updated_at')
    list_filter = ('session_type', 'race__season', 'race')
    search_fields = ('user__username', 'race__name')
    autocomplete_fields = ('user', 'race')
    readonly_fields = ('points', 'breakdown_display', 'created_at', 'updated_at')
    exclude = ('points_breakdown',)
    actions = ['reset_and_rescore']

    @admin.display(description='Breakdown')
    def breakdown_display(self, obj):
        if obj.points_breakdown is None:
            return '-'
        try:
            breakdown = ScoringBreakdown.from_dict(obj.points_breakdown)
        except ValueError as exc:
            return format_html('<em>Invalid breakdown: {}</em>', exc)
        return format_html('<pre>{}</pre>', format_breakdown(breakdown))

    @admin.action(description=_('Reset scores and re-score the selected sessions'))
    def reset_and_rescore(self, request: HttpRequest, queryset):
        runner = ScoringJobRunner()
        for race_id, session_type in _scored_sessions(queryset):
            cleared = runner.reset_scores(race_id, session_type)
            try:
                result = runner.run_session(race_id, session_type)
            except SessionNotScoreable as exc:
                self.message_user(
                    request,
                    _('Reset %(count)d scores but could not re-score: %(error)s')
                    % {'count': cleared, 'error': exc},
                    level=messages.WARNING,
                )
                continue

            if result.status == ScoringJob.Status.COMPLETED and not result.errors:
                level = messages.SUCCESS
            else:
                level = messages.WARNING
            self.message_user(
                request,
                _(
                    'Race %(race)s %(session)s: reset %(cleared)d, scored %(scored)d, '
                    '%(errors)d errors (%(status)s).'
                )
                % {
                    'race': race_id,
                    'session': session_type,
                    'cleared': cleared,
                    'scored': result.scored,
                    'errors': result.errors,
                    'status': result.status,
                },
                level=level,
            )


@admin.register(ScoringJob)
class ScoringJobAdmin(admin.ModelAdmin):
    list_display = (
        'race',
        'session_type',
        'status',
        'scored_count',
        'error_count',
        'total_count',
        'started_at',
        'finished_at',
    )
    list_filter = ('status', 'session_type')
    search_fields = ('race__name',)
    readonly_fields = (
        'race',
        'session_type',
        'status',
        'scored_count',
        'error_count',
        'total_count',
        'started_at',
        'finished_at',
        'error_message',
        'created_at',
        'updated_at',
    )

    def has_add_permission(self, request):
        return False


@admin.register(BadgeUnlock)
class BadgeUnlockAdmin(admin.ModelAdmin):
    list_display = ('user', 'badge_code', 'race', 'unlocked_at')
    list_filter = ('badge_code',)
    search_fields = ('user__username', 'badge_code')
    autocomplete_fields = ('user', 'race')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'kind', 'title', 'is_read', 'created_at')
    list_filter = ('kind', 'is_read')
    search_fields = ('user__username', 'title')

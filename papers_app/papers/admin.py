from __future__ import annotations

import logging
from typing import override

from django.contrib import admin, messages
from django.utils import timezone

from papers import cycles_services
from papers.errors import CycleError
from papers.models import (
    Cycle,
    CycleResult,
    Group,
    Participant,
    Ranking,
    RankingRule,
    Submission,
    TokenPattern,
    Vote,
)
from papers.ranking import ranking_rule_gaps
from papers.rollover import run_rollover_pass

logger = logging.getLogger(__name__)


def _format_gap(start: int, end: int | None) -> str:
    if end is None:
        return f"{start}+"
    if start == end:
        return str(start)
    return f"{start}-{end}"


class TokenPatternInline(admin.TabularInline):
    model = TokenPattern
    extra = 0


class RankingRuleInline(admin.TabularInline):
    model = RankingRule
    extra = 0


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ("name", "cadence_days", "voting_days", "auto_rollover", "current_phase")
    list_filter = ("auto_rollover",)
    search_fields = ("name",)
    inlines = (TokenPatternInline, RankingRuleInline)
    actions = (
        "start_cycle_now",
        "run_rollover_now",
        "finish_voting_and_start_next",
        "finish_voting_and_pause",
    )

    @admin.display(description="Current phase")
    def current_phase(self, obj: Group) -> str:
        cycle = cycles_services.current_cycle(obj)
        if cycle is None:
            return "-"
        return f"#{cycle.cycle_number} {cycle.phase().label}"

    @override
    def save_related(self, request, form, formsets, change) -> None:
        super().save_related(request, form, formsets, change)

        gaps = ranking_rule_gaps(form.instance.ranking_rules.all())
        if gaps:
            ranges = ", ".join(_format_gap(start, end) for start, end in gaps)
            self.message_user(
                request,
                f"No ranking rule covers cycles with {ranges} submission(s); voting will fail for those cycles.",
                level=messages.WARNING,
            )

    @admin.action(description="Start a new cycle now")
    def start_cycle_now(self, request, queryset) -> None:
        for group in queryset:
            try:
                cycle = cycles_services.start_cycle_now(group=group)
            except CycleError as e:
                self.message_user(request, f"{group}: {e}", level=messages.ERROR)
                continue
            self.message_user(request, f"{group}: cycle {cycle.cycle_number} started.", level=messages.SUCCESS)

    @admin.action(description="Run rollover now")
    def run_rollover_now(self, request, queryset) -> None:
        now = timezone.now()
        advanced = 0
        for group in queryset:
            try:
                outcome = run_rollover_pass(group.id, now=now)
            except CycleError as e:
                logger.exception("Admin rollover failed for group id=%s", group.id)
                self.message_user(request, f"{group}: {e}", level=messages.ERROR)
                continue
            if outcome.processed:
                advanced += 1

        self.message_user(request, f"Advanced {advanced} group(s).", level=messages.SUCCESS)

    def _finish_voting(self, request, queryset, *, start_next: bool) -> None:
        for group in queryset:
            try:
                result, outcome = cycles_services.finish_voting(group=group, start_next=start_next)
            except CycleError as e:
                self.message_user(request, f"{group}: {e}", level=messages.ERROR)
                continue

            winner = result.winning_submission if result is not None else None
            summary = f"{group}: voting closed; winner: {winner or 'none'}."
            if outcome is not None and outcome.next_cycle_number is not None:
                summary += f" Cycle {outcome.next_cycle_number} is open for submissions."
            elif not start_next:
                summary += " Automatic rollover is paused."
            self.message_user(request, summary, level=messages.SUCCESS)

    @admin.action(description="Finish voting and start next cycle")
    def finish_voting_and_start_next(self, request, queryset) -> None:
        self._finish_voting(request, queryset, start_next=True)

    @admin.action(description="Finish voting and pause")
    def finish_voting_and_pause(self, request, queryset) -> None:
        self._finish_voting(request, queryset, start_next=False)


@admin.register(Cycle)
class CycleAdmin(admin.ModelAdmin):
    list_display = ("__str__", "phase_label", "submission_start", "voting_start", "voting_end")
    list_filter = ("group",)
    ordering = ("group", "-cycle_number")

    @admin.display(description="Phase")
    def phase_label(self, obj: Cycle) -> str:
        return obj.phase().label

    @override
    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj=obj))
        # Renumbering would break the one-cycle-per-number guarantee rollover relies on.
        if obj is not None:
            readonly.extend(["group", "cycle_number"])
        return tuple(readonly)


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = ("token", "display_name", "group", "registered_at")
    list_filter = ("group",)
    search_fields = ("token", "display_name")


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ("title", "cycle", "participant", "submitted_at")
    list_filter = ("cycle__group",)
    search_fields = ("title", "url")


class RankingInline(admin.TabularInline):
    model = Ranking
    extra = 0
    readonly_fields = ("submission", "rank")
    can_delete = False


@admin.register(Vote)
class VoteAdmin(admin.ModelAdmin):
    list_display = ("id", "cycle", "participant", "voted_at")
    list_filter = ("cycle__group",)
    inlines = (RankingInline,)


@admin.register(CycleResult)
class CycleResultAdmin(admin.ModelAdmin):
    list_display = ("cycle", "winning_submission", "total_votes", "calculated_at")
    readonly_fields = ("cycle", "winning_submission", "total_votes", "elimination_rounds", "calculated_at")

    @override
    def has_add_permission(self, request) -> bool:
        return False

    @override
    def has_change_permission(self, request, obj=None) -> bool:
        return False

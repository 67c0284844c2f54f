from __future__ import annotations

import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from papers.phases import Phase, evaluate_phase


def default_cadence_days() -> int:
    return int(settings.PAPERS_DEFAULT_CADENCE_DAYS)


def default_voting_days() -> int:
    return int(settings.PAPERS_DEFAULT_VOTING_DAYS)


class Group(models.Model):
    name = models.CharField(max_length=255)
    cadence_days = models.PositiveIntegerField(
        default=default_cadence_days,
        help_text="Total length of a cycle (submission + voting) in days.",
    )
    voting_days = models.PositiveIntegerField(
        default=default_voting_days,
        help_text="Length of the voting window in days.",
    )
    auto_rollover = models.BooleanField(
        default=True,
        help_text="When disabled, completed cycles are not followed by a new cycle automatically.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(voting_days__gt=0) & Q(cadence_days__gt=F("voting_days")),
                name="chk_group_voting_shorter_than_cadence",
            ),
        ]
        ordering = ("name", "id")

    def __str__(self) -> str:
        return self.name

    @property
    def submission_days(self) -> int:
        return self.cadence_days - self.voting_days


class TokenPattern(models.Model):
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name="token_patterns")
    pattern = models.CharField(max_length=255, help_text='Wildcard pattern, e.g. "papers-*".')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.group_id}: {self.pattern}"


class RankingRule(models.Model):
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name="ranking_rules")
    min_papers = models.PositiveIntegerField()
    max_papers = models.PositiveIntegerField(null=True, blank=True, help_text="Leave empty for no upper bound.")
    required_rankings = models.PositiveIntegerField()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(required_rankings__gte=1),
                name="chk_rankingrule_required_rankings_positive",
            ),
            models.CheckConstraint(
                condition=Q(max_papers__isnull=True) | Q(max_papers__gte=F("min_papers")),
                name="chk_rankingrule_range_ordered",
            ),
        ]
        ordering = ("group", "min_papers")

    def __str__(self) -> str:
        upper = "∞" if self.max_papers is None else str(self.max_papers)
        return f"{self.min_papers}-{upper} papers: rank {self.required_rankings}"


class Cycle(models.Model):
    group = models.ForeignKey(Group, on_delete=models.PROTECT, related_name="cycles")
    cycle_number = models.PositiveIntegerField()
    submission_start = models.DateTimeField()
    submission_end = models.DateTimeField()
    voting_start = models.DateTimeField()
    voting_end = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["group", "cycle_number"], name="uniq_cycle_group_number"),
            models.CheckConstraint(
                condition=(
                    Q(submission_start__lte=F("submission_end"))
                    & Q(submission_end__lte=F("voting_start"))
                    & Q(voting_start__lte=F("voting_end"))
                ),
                name="chk_cycle_windows_ordered",
            ),
        ]
        indexes = [
            models.Index(fields=["group", "-cycle_number"], name="cycle_group_num"),
        ]
        ordering = ("group", "-cycle_number")

    def __str__(self) -> str:
        return f"{self.group} #{self.cycle_number}"

    def phase(self, now: datetime.datetime | None = None) -> Phase:
        return evaluate_phase(self, now if now is not None else timezone.now())


class Participant(models.Model):
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name="participants")
    token = models.CharField(max_length=100)
    display_name = models.CharField(max_length=255, blank=True, default="")
    registered_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["group", "token"], name="uniq_participant_group_token"),
        ]

    def __str__(self) -> str:
        return self.display_name or self.token


class Submission(models.Model):
    cycle = models.ForeignKey(Cycle, on_delete=models.CASCADE, related_name="submissions")
    participant = models.ForeignKey(Participant, on_delete=models.PROTECT, related_name="submissions")
    title = models.CharField(max_length=500)
    url = models.URLField(max_length=2000)
    publication_date = models.DateField(null=True, blank=True)
    recommendation = models.TextField(blank=True, default="")
    submitted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("submitted_at", "id")

    def __str__(self) -> str:
        return self.title


class Vote(models.Model):
    cycle = models.ForeignKey(Cycle, on_delete=models.CASCADE, related_name="votes")
    participant = models.ForeignKey(Participant, on_delete=models.PROTECT, related_name="votes")
    voted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["cycle", "participant"], name="uniq_vote_cycle_participant"),
        ]

    def __str__(self) -> str:
        return f"Vote {self.pk} ({self.cycle})"


class Ranking(models.Model):
    vote = models.ForeignKey(Vote, on_delete=models.CASCADE, related_name="rankings")
    submission = models.ForeignKey(Submission, on_delete=models.PROTECT, related_name="rankings")
    rank = models.PositiveIntegerField(help_text="1 = first choice.")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["vote", "rank"], name="uniq_ranking_vote_rank"),
            models.UniqueConstraint(fields=["vote", "submission"], name="uniq_ranking_vote_submission"),
            models.CheckConstraint(condition=Q(rank__gte=1), name="chk_ranking_rank_positive"),
        ]
        ordering = ("vote", "rank")

    def __str__(self) -> str:
        return f"{self.vote_id}: #{self.rank} -> {self.submission_id}"


class CycleResult(models.Model):
    cycle = models.OneToOneField(Cycle, on_delete=models.CASCADE, related_name="result")
    winning_submission = models.ForeignKey(
        Submission,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    total_votes = models.PositiveIntegerField()
    elimination_rounds = models.JSONField(default=list, blank=True)
    calculated_at = models.DateTimeField()

    def __str__(self) -> str:
        return f"Result for {self.cycle}"

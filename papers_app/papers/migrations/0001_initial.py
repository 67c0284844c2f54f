from __future__ import annotations

import django.db.models.deletion
import django.utils.timezone
import papers.models
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Group",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                (
                    "cadence_days",
                    models.PositiveIntegerField(
                        default=papers.models.default_cadence_days,
                        help_text="Total length of a cycle (submission + voting) in days.",
                    ),
                ),
                (
                    "voting_days",
                    models.PositiveIntegerField(
                        default=papers.models.default_voting_days,
                        help_text="Length of the voting window in days.",
                    ),
                ),
                (
                    "auto_rollover",
                    models.BooleanField(
                        default=True,
                        help_text="When disabled, completed cycles are not followed by a new cycle automatically.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("name", "id"),
            },
        ),
        migrations.AddConstraint(
            model_name="group",
            constraint=models.CheckConstraint(
                condition=models.Q(("voting_days__gt", 0), ("cadence_days__gt", models.F("voting_days"))),
                name="chk_group_voting_shorter_than_cadence",
            ),
        ),
        migrations.CreateModel(
            name="TokenPattern",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("pattern", models.CharField(help_text='Wildcard pattern, e.g. "papers-*".', max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="token_patterns",
                        to="papers.group",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="RankingRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("min_papers", models.PositiveIntegerField()),
                (
                    "max_papers",
                    models.PositiveIntegerField(blank=True, help_text="Leave empty for no upper bound.", null=True),
                ),
                ("required_rankings", models.PositiveIntegerField()),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ranking_rules",
                        to="papers.group",
                    ),
                ),
            ],
            options={
                "ordering": ("group", "min_papers"),
            },
        ),
        migrations.AddConstraint(
            model_name="rankingrule",
            constraint=models.CheckConstraint(
                condition=models.Q(("required_rankings__gte", 1)),
                name="chk_rankingrule_required_rankings_positive",
            ),
        ),
        migrations.AddConstraint(
            model_name="rankingrule",
            constraint=models.CheckConstraint(
                condition=models.Q(("max_papers__isnull", True), ("max_papers__gte", models.F("min_papers")), _connector="OR"),
                name="chk_rankingrule_range_ordered",
            ),
        ),
        migrations.CreateModel(
            name="Cycle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("cycle_number", models.PositiveIntegerField()),
                ("submission_start", models.DateTimeField()),
                ("submission_end", models.DateTimeField()),
                ("voting_start", models.DateTimeField()),
                ("voting_end", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cycles",
                        to="papers.group",
                    ),
                ),
            ],
            options={
                "ordering": ("group", "-cycle_number"),
            },
        ),
        migrations.AddConstraint(
            model_name="cycle",
            constraint=models.UniqueConstraint(fields=("group", "cycle_number"), name="uniq_cycle_group_number"),
        ),
        migrations.AddConstraint(
            model_name="cycle",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("submission_start__lte", models.F("submission_end")),
                    ("submission_end__lte", models.F("voting_start")),
                    ("voting_start__lte", models.F("voting_end")),
                ),
                name="chk_cycle_windows_ordered",
            ),
        ),
        migrations.AddIndex(
            model_name="cycle",
            index=models.Index(fields=["group", "-cycle_number"], name="cycle_group_num"),
        ),
        migrations.CreateModel(
            name="Participant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token", models.CharField(max_length=100)),
                ("display_name", models.CharField(blank=True, default="", max_length=255)),
                ("registered_at", models.DateTimeField(auto_now_add=True)),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="papers.group",
                    ),
                ),
            ],
        ),
        migrations.AddConstraint(
            model_name="participant",
            constraint=models.UniqueConstraint(fields=("group", "token"), name="uniq_participant_group_token"),
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=500)),
                ("url", models.URLField(max_length=2000)),
                ("publication_date", models.DateField(blank=True, null=True)),
                ("recommendation", models.TextField(blank=True, default="")),
                ("submitted_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "cycle",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="papers.cycle",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="submissions",
                        to="papers.participant",
                    ),
                ),
            ],
            options={
                "ordering": ("submitted_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="Vote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voted_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "cycle",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="votes",
                        to="papers.cycle",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="papers.participant",
                    ),
                ),
            ],
        ),
        migrations.AddConstraint(
            model_name="vote",
            constraint=models.UniqueConstraint(fields=("cycle", "participant"), name="uniq_vote_cycle_participant"),
        ),
        migrations.CreateModel(
            name="Ranking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rank", models.PositiveIntegerField(help_text="1 = first choice.")),
                (
                    "submission",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rankings",
                        to="papers.submission",
                    ),
                ),
                (
                    "vote",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rankings",
                        to="papers.vote",
                    ),
                ),
            ],
            options={
                "ordering": ("vote", "rank"),
            },
        ),
        migrations.AddConstraint(
            model_name="ranking",
            constraint=models.UniqueConstraint(fields=("vote", "rank"), name="uniq_ranking_vote_rank"),
        ),
        migrations.AddConstraint(
            model_name="ranking",
            constraint=models.UniqueConstraint(fields=("vote", "submission"), name="uniq_ranking_vote_submission"),
        ),
        migrations.AddConstraint(
            model_name="ranking",
            constraint=models.CheckConstraint(condition=models.Q(("rank__gte", 1)), name="chk_ranking_rank_positive"),
        ),
        migrations.CreateModel(
            name="CycleResult",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("total_votes", models.PositiveIntegerField()),
                ("elimination_rounds", models.JSONField(blank=True, default=list)),
                ("calculated_at", models.DateTimeField()),
                (
                    "cycle",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="result",
                        to="papers.cycle",
                    ),
                ),
                (
                    "winning_submission",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="papers.submission",
                    ),
                ),
            ],
        ),
    ]

from __future__ import annotations

import datetime
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from papers.errors import CycleConfigError, StorageUnavailable
from papers.models import Cycle
from papers.tests.cycle_helpers import make_cycle, make_group


class GroupRolloverViewTests(TestCase):
    def setUp(self) -> None:
        self.group = make_group()
        make_cycle(self.group, submission_start=timezone.now() - datetime.timedelta(days=20))

    def test_post_advances_completed_group(self) -> None:
        resp = self.client.post(reverse("group-rollover", args=[self.group.id]))

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["ok"])
        self.assertTrue(data["processed"])
        self.assertEqual(data["next_cycle_number"], 2)

        resp = self.client.post(reverse("group-rollover", args=[self.group.id]))
        self.assertFalse(resp.json()["processed"])
        self.assertEqual(Cycle.objects.filter(group=self.group).count(), 2)

    def test_get_is_not_allowed(self) -> None:
        resp = self.client.get(reverse("group-rollover", args=[self.group.id]))

        self.assertEqual(resp.status_code, 405)

    def test_unknown_group_is_404(self) -> None:
        resp = self.client.post(reverse("group-rollover", args=[999999]))

        self.assertEqual(resp.status_code, 404)

    def test_storage_outage_is_503(self) -> None:
        with patch("papers.views_rollover.run_rollover_pass", side_effect=StorageUnavailable("down")):
            with self.assertLogs("papers.views_rollover", level="ERROR"):
                resp = self.client.post(reverse("group-rollover", args=[self.group.id]))

        self.assertEqual(resp.status_code, 503)
        self.assertFalse(resp.json()["ok"])

    def test_other_cycle_errors_are_reported_as_json(self) -> None:
        with patch("papers.views_rollover.run_rollover_pass", side_effect=CycleConfigError("voting days must be positive")):
            with self.assertLogs("papers.views_rollover", level="ERROR"):
                resp = self.client.post(reverse("group-rollover", args=[self.group.id]))

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"ok": False, "error": "voting days must be positive"})


@override_settings(CRON_SECRET="s3cret")
class CronRolloverViewTests(TestCase):
    def setUp(self) -> None:
        self.group = make_group()
        make_cycle(self.group, submission_start=timezone.now() - datetime.timedelta(days=20))

    def test_valid_secret_runs_pass_for_all_groups(self) -> None:
        resp = self.client.get(reverse("cron-rollover"), HTTP_AUTHORIZATION="Bearer s3cret")

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["ok"])
        self.assertEqual(data["groups_advanced"], 1)
        self.assertEqual(data["failed"], [])
        self.assertIn("timestamp", data)
        self.assertTrue(Cycle.objects.filter(group=self.group, cycle_number=2).exists())

    def test_wrong_or_missing_secret_is_401(self) -> None:
        self.assertEqual(
            self.client.post(reverse("cron-rollover"), HTTP_AUTHORIZATION="Bearer nope").status_code,
            401,
        )
        self.assertEqual(self.client.post(reverse("cron-rollover")).status_code, 401)
        self.assertFalse(Cycle.objects.filter(group=self.group, cycle_number=2).exists())

    @override_settings(CRON_SECRET="")
    def test_endpoint_is_closed_without_configured_secret(self) -> None:
        resp = self.client.get(reverse("cron-rollover"), HTTP_AUTHORIZATION="Bearer ")

        self.assertEqual(resp.status_code, 401)

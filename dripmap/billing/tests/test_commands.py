"""Tests for the prune_processed_events management command."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import CommandError
from django.core.management import call_command
from django.utils import timezone

from dripmap.billing.models import ProcessedEvent
from dripmap.billing.tests.factories import ProcessedEventFactory


def days_ago(days):
    return timezone.now() - timedelta(days=days)


@pytest.mark.django_db
class TestPruneProcessedEvents:
    def test_deletes_events_past_retention(self, settings):
        settings.BILLING_EVENT_RETENTION_DAYS = 90
        ProcessedEventFactory(event_id="evt_old", received_at=days_ago(120))
        ProcessedEventFactory(event_id="evt_recent", received_at=days_ago(10))

        out = StringIO()
        call_command("prune_processed_events", stdout=out)

        assert list(ProcessedEvent.objects.values_list("event_id", flat=True)) == [
            "evt_recent",
        ]
        assert "Deleted 1 processed event(s)." in out.getvalue()

    def test_days_option_overrides_setting(self):
        ProcessedEventFactory(event_id="evt_old", received_at=days_ago(40))
        ProcessedEventFactory(event_id="evt_recent", received_at=days_ago(10))

        call_command("prune_processed_events", "--days", "30", stdout=StringIO())

        assert not ProcessedEvent.objects.filter(event_id="evt_old").exists()
        assert ProcessedEvent.objects.filter(event_id="evt_recent").exists()

    def test_dry_run_keeps_events(self):
        ProcessedEventFactory(received_at=days_ago(365))
        ProcessedEventFactory(received_at=days_ago(200))

        out = StringIO()
        call_command("prune_processed_events", "--dry-run", stdout=out)

        assert ProcessedEvent.objects.count() == 2  # noqa: PLR2004
        assert "[DRY RUN] Would delete 2 processed event(s)" in out.getvalue()

    def test_nothing_to_delete(self):
        ProcessedEventFactory()

        out = StringIO()
        call_command("prune_processed_events", "--days", "7", stdout=out)

        assert ProcessedEvent.objects.count() == 1
        assert "No processed events older than 7 day(s)." in out.getvalue()

    def test_rejects_non_positive_days(self):
        with pytest.raises(CommandError, match="at least 1"):
            call_command("prune_processed_events", "--days", "0", stdout=StringIO())

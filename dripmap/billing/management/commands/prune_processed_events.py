"""
Management command to prune old Stripe webhook ledger rows.

The ledger only needs to remember an event id for as long as Stripe may
still redeliver it (Stripe retries for up to three days). Rows older than
the retention window can be deleted.

Usage:
    python manage.py prune_processed_events
    python manage.py prune_processed_events --days 30
    python manage.py prune_processed_events --dry-run
"""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.core.management.base import CommandError
from django.utils import timezone

from dripmap.billing.models import ProcessedEvent


class Command(BaseCommand):
    help = "Delete processed Stripe events older than the retention window."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Retention window in days (default: BILLING_EVENT_RETENTION_DAYS)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        days = options["days"]
        if days is None:
            days = settings.BILLING_EVENT_RETENTION_DAYS
        if days < 1:
            msg = "--days must be at least 1."
            raise CommandError(msg)

        cutoff = timezone.now() - timedelta(days=days)
        old_events = ProcessedEvent.objects.filter(received_at__lt=cutoff)
        count = old_events.count()

        if count == 0:
            self.stdout.write(
                self.style.SUCCESS(f"No processed events older than {days} day(s)."),
            )
            return

        if options["dry_run"]:
            self.stdout.write(
                self.style.WARNING(
                    f"[DRY RUN] Would delete {count} processed event(s) "
                    f"older than {days} day(s).",
                ),
            )
            return

        deleted, _ = old_events.delete()
        self.stdout.write(
            self.style.SUCCESS(f"Deleted {deleted} processed event(s)."),
        )

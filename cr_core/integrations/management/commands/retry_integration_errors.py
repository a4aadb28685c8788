# cr_core/integrations/management/commands/retry_integration_errors.py
from __future__ import annotations

from uuid import UUID

from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError

from cr_core.integrations.services import MAX_BATCH_LIMIT, load_processor, run_retry_sweep


class Command(BaseCommand):
    help = "Retry due integration errors with exponential backoff. Safe to run repeatedly (cron)."

    def add_arguments(self, parser):
        parser.add_argument("--tenant-id", type=str, default=None, help="Optional tenant UUID filter.")
        parser.add_argument("--patient-id", type=int, default=None, help="Optional patient id filter.")
        parser.add_argument("--limit", type=int, default=None, help=f"Batch size (max {MAX_BATCH_LIMIT}).")

    def handle(self, *args, **opts):
        tenant_id = None
        if opts["tenant_id"]:
            try:
                tenant_id = UUID(opts["tenant_id"])
            except ValueError:
                raise CommandError("--tenant-id must be a UUID")

        try:
            processor = load_processor()
        except ImproperlyConfigured as exc:
            raise CommandError(str(exc))

        summary = run_retry_sweep(
            processor=processor,
            tenant_id=tenant_id,
            patient_id=opts["patient_id"],
            limit=opts["limit"],
        )
        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {summary.processed}: {summary.resolved} resolved, {summary.failed} failed."
            )
        )

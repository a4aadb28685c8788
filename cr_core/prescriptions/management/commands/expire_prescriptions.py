# cr_core/prescriptions/management/commands/expire_prescriptions.py
from __future__ import annotations

from uuid import UUID

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from cr_core.prescriptions.services import PrescriptionService


class Command(BaseCommand):
    help = "Mark active prescriptions whose end_date has passed as expired. Safe to run repeatedly (cron)."

    def add_arguments(self, parser):
        parser.add_argument("--tenant-id", type=str, default=None, help="Optional tenant UUID filter.")
        parser.add_argument("--now", type=str, default=None, help="Override the cut-off (ISO datetime).")

    def handle(self, *args, **opts):
        tenant_id = None
        if opts["tenant_id"]:
            try:
                tenant_id = UUID(opts["tenant_id"])
            except ValueError:
                raise CommandError("--tenant-id must be a UUID")

        now = None
        if opts["now"]:
            now = parse_datetime(opts["now"])
            if now is None:
                raise CommandError("--now must be an ISO datetime")
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        updated = PrescriptionService.expire_prescriptions(now=now, tenant_id=tenant_id)
        self.stdout.write(self.style.SUCCESS(f"Expired {updated} prescription(s)."))

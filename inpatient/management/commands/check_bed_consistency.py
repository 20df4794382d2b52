import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from inpatient.models import BedSpace
from inpatient.services.broadcast import publish_on_commit
from inpatient.services.reporting import find_inconsistencies

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Report beds whose status disagrees with the occupancy ledger."

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix', action='store_true',
            help='Set status to occupied/available to match the ledger',
        )

    def handle(self, *args, **options):
        problems = find_inconsistencies()
        if not problems:
            self.stdout.write(self.style.SUCCESS("No inconsistent beds."))
            return

        for p in problems:
            self.stdout.write(
                f"bed {p['bedId']} (Room {p['roomNumber']} Bed {p['bedNumber']}): "
                f"status={p['status']} activeOccupancy={p['hasActiveOccupancy']}"
            )

        if not options['fix']:
            self.stdout.write(self.style.WARNING(f"{len(problems)} inconsistent bed(s); rerun with --fix to repair."))
            return

        with transaction.atomic():
            for p in problems:
                status = BedSpace.STATUS_OCCUPIED if p['hasActiveOccupancy'] else BedSpace.STATUS_AVAILABLE
                BedSpace.objects.filter(pk=p['bedId']).update(status=status)
                logger.warning("repaired bed %s status %s -> %s", p['bedId'], p['status'], status)
            publish_on_commit('beds.repaired', bedIds=[p['bedId'] for p in problems])
        self.stdout.write(self.style.SUCCESS(f"Repaired {len(problems)} bed(s)."))

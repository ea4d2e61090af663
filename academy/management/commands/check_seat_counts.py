"""
Audit batch seat counters against their enrollment rows.

Usage:
    # Report batches whose current_enrolled differs from the live count
    python manage.py check_seat_counts

    # Repair drifted counters (each batch under its row lock)
    python manage.py check_seat_counts --fix

    # Limit to one batch
    python manage.py check_seat_counts --batch 5b0c...
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from academy.exceptions import CapacityError, NotFoundError
from academy.models import Batch
from academy.services.capacity_service import reconcile


class Command(BaseCommand):
    help = 'Compare Batch.current_enrolled with the number of enrollments'

    def add_arguments(self, parser):
        parser.add_argument('--batch', type=str, help='Only check this batch id')
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Overwrite drifted counters with the live enrollment count'
        )

    def handle(self, *args, **options):
        fix = options['fix']
        if options['batch']:
            batch_ids = [options['batch']]
        else:
            batch_ids = list(Batch.objects.values_list('id', flat=True))

        drifted = 0
        failed = 0
        for batch_id in batch_ids:
            try:
                stored, actual = reconcile(batch_id, fix=fix)
            except (NotFoundError, ValidationError):
                raise CommandError(f'Batch {batch_id} does not exist.')
            except CapacityError as e:
                self.stderr.write(self.style.ERROR(str(e)))
                failed += 1
                continue

            if stored == actual:
                continue
            drifted += 1
            verb = 'fixed' if fix else 'drift'
            self.stdout.write(self.style.WARNING(
                f'{verb}: batch {batch_id} current_enrolled={stored} enrollments={actual}'
            ))

        if failed:
            raise CommandError(
                f'{failed} batch(es) could not be repaired; {drifted} other(s) drifted.'
            )
        if drifted == 0:
            self.stdout.write(self.style.SUCCESS(f'{len(batch_ids)} batch(es) consistent.'))
        elif not fix:
            raise CommandError(f'{drifted} batch(es) with drifted seat counts. Re-run with --fix.')
        else:
            self.stdout.write(self.style.SUCCESS(f'Repaired {drifted} batch(es).'))

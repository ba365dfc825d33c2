from django.core.management.base import BaseCommand

from fees.admission_linking import retry_pending_links


class Command(BaseCommand):
    help = 'Retry admission fee links left pending by a failed admission'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=None, help='Maximum links to retry')

    def handle(self, *args, **options):
        outcomes = retry_pending_links(limit=options['limit'])
        if not outcomes:
            self.stdout.write(self.style.SUCCESS('No pending fee links.'))
            return

        linked = 0
        for student_id, result in outcomes:
            if result.linked:
                linked += 1
                self.stdout.write(f"  student {student_id}: linked to invoice {result.invoice_id}")
            else:
                self.stdout.write(f"  student {student_id}: still pending ({result.warning.message})")
        style = self.style.SUCCESS if linked == len(outcomes) else self.style.WARNING
        self.stdout.write(style(f'Done! Linked {linked} of {len(outcomes)} pending students'))

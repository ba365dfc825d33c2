from django.core.management.base import BaseCommand

from fees.reconciliation import reconcile_all


class Command(BaseCommand):
    help = 'Compare student fee summaries against the invoice ledger'

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true', help='Resync fee summaries from the active invoice')
        parser.add_argument('--student', type=int, action='append', dest='students',
                            help='Limit to this student id (repeatable)')

    def handle(self, *args, **options):
        fix = options['fix']
        self.stdout.write('Reconciling fee summaries%s...' % (' (fix)' if fix else ''))

        report = reconcile_all(fix=fix, student_ids=options.get('students'))

        for finding in report.findings:
            self.stdout.write(f"  student {finding.student_id}: {finding.message}")
        summary = f'Done! Checked {report.checked} students, {len(report.findings)} findings'
        if fix:
            summary += f', {report.fixed} resynced'
        style = self.style.WARNING if report.findings and not fix else self.style.SUCCESS
        self.stdout.write(style(summary))

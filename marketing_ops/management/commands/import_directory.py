from pathlib import Path

from django.core.files import File
from django.core.management.base import BaseCommand, CommandError

from marketing_ops.authentication import actor_from_document
from marketing_ops.exceptions import MarketingOpsError
from marketing_ops.services import BulkImportService
from marketing_ops.store import get_entity_store


class Command(BaseCommand):
    help = 'Bulk import departments or users from a CSV or Excel file and print the per-row report.'

    def add_arguments(self, parser):
        parser.add_argument('path', help='CSV or .xlsx file to import.')
        parser.add_argument('--kind', choices=('departments', 'users'), required=True)
        parser.add_argument('--as', dest='actor_email', required=True, help='Email of the admin running the import.')

    def handle(self, *args, **options):
        path = Path(options['path'])
        if not path.exists():
            raise CommandError(f'File not found: {path}')
        store = get_entity_store()
        user = store.first('user', email=options['actor_email'].strip().lower())
        if user is None:
            raise CommandError(f"Unknown user: {options['actor_email']}")
        service = BulkImportService(actor=actor_from_document(user, store), store=store)

        try:
            with path.open('rb') as handle:
                rows = service.parse(File(handle, name=path.name))
            if options['kind'] == 'users':
                report = service.import_users(rows)
            else:
                report = service.import_departments(rows)
        except MarketingOpsError as exc:
            raise CommandError(exc.message) from exc

        for row in report['rows']:
            if row['status'] == 'added':
                self.stdout.write(self.style.SUCCESS(f"Row {row['row']}: added"))
            else:
                self.stdout.write(self.style.WARNING(f"Row {row['row']}: failed ({row['reason']})"))
        self.stdout.write(f"Added {report['added']}, failed {report['failed']}")

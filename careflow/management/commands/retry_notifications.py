from django.core.management.base import BaseCommand

from careflow.services.notifications import retry_deferred


class Command(BaseCommand):
    help = "Re-deliver notifications that failed after their transition committed."

    def add_arguments(self, parser):
        parser.add_argument('--batch', type=int, default=100, help='Maximum entries to replay in one run.')
        parser.add_argument('--limit', type=int, default=None,
                            help='Skip entries with this many attempts (default NOTIFICATION_RETRY_LIMIT).')

    def handle(self, *args, **opts):
        delivered, failing = retry_deferred(limit=opts['limit'], batch=opts['batch'])
        style = self.style.SUCCESS if not failing else self.style.WARNING
        self.stdout.write(style(f"delivered={delivered} still_failing={failing}"))

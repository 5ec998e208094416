from django.core.management.base import BaseCommand, CommandError

from payments.poller import (
    DEFAULT_INTERVAL,
    DEFAULT_MAX_ATTEMPTS,
    SUCCESS,
    TIMEOUT,
    StatusPoller,
    http_status_fetcher,
)


class Command(BaseCommand):
    help = "Poll /payment/status for a transaction until it succeeds, fails or times out"

    def add_arguments(self, parser):
        parser.add_argument('transaction_id')
        parser.add_argument('--base-url', default='http://localhost:8000')
        parser.add_argument('--interval', type=float, default=DEFAULT_INTERVAL)
        parser.add_argument('--max-attempts', type=int, default=DEFAULT_MAX_ATTEMPTS)

    def handle(self, *args, **options):
        if options['max_attempts'] < 1:
            raise CommandError("--max-attempts must be at least 1")

        poller = StatusPoller(
            http_status_fetcher(options['base_url']),
            interval=options['interval'],
            max_attempts=options['max_attempts'],
        )
        try:
            result = poller.poll(options['transaction_id'])
        except KeyboardInterrupt:
            poller.cancel()
            raise CommandError("Polling interrupted")

        if result.outcome == SUCCESS:
            self.stdout.write(self.style.SUCCESS(result.message))
        elif result.outcome == TIMEOUT:
            self.stdout.write(self.style.WARNING(result.message))
        else:
            raise CommandError(result.message)

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError

from webhooks.config import get_ingestion_config
from webhooks.services.ledger import requeue_stale_deliveries
from webhooks.tasks import process_delivery


class Command(BaseCommand):
    help = 'Re-enqueue stuck, idle or abandoned deliveries'

    def add_arguments(self, parser):
        parser.add_argument('--older-than', type=int, default=None,
                            help='Seconds a claim or idle entry may age before it is requeued')

    def handle(self, *args, **options):
        config = get_ingestion_config()
        older_than = config.processing_timeout
        if options['older_than'] is not None:
            if options['older_than'] < 0:
                raise CommandError('--older-than must not be negative')
            older_than = timedelta(seconds=options['older_than'])

        self.stdout.write(f'Sweeping deliveries idle for more than {int(older_than.total_seconds())}s...')
        result = requeue_stale_deliveries(older_than, config.max_attempts, config.retry_backoff_max)

        for delivery_id in result.requeued:
            process_delivery.delay(delivery_id)

        self.stdout.write(self.style.SUCCESS(f'  Requeued: {len(result.requeued)}'))
        if result.failed:
            self.stdout.write(self.style.WARNING(f'  Permanently failed: {len(result.failed)}'))

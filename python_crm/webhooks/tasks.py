"""
Celery tasks for async delivery processing.
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings

from webhooks.config import get_ingestion_config
from webhooks.exceptions import TransientProcessingFailure
from webhooks.services.ledger import requeue_stale_deliveries
from webhooks.services.merge import process_inbound_delivery

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(TransientProcessingFailure,),
    retry_backoff=getattr(settings, 'WEBHOOK_RETRY_BACKOFF', 60),  # 1m, 2m, 4m, ...
    retry_backoff_max=getattr(settings, 'WEBHOOK_RETRY_BACKOFF_MAX', 3600),
    max_retries=getattr(settings, 'WEBHOOK_MAX_ATTEMPTS', 5),
    retry_jitter=False
)
def process_delivery(self, delivery_id: int):
    """
    Merge one inbound delivery into the CRM.

    Safe under at-least-once delivery: the ledger claim turns duplicate queue
    messages for the same delivery into no-ops. The attempt ceiling is
    enforced by the ledger; Celery's max_retries is only a backstop.

    Args:
        delivery_id: ID of the InboundDelivery to process

    Raises:
        TransientProcessingFailure: the attempt failed and may be retried
    """
    outcome = process_inbound_delivery(delivery_id, get_ingestion_config())

    if outcome.failed and not outcome.terminal:
        logger.warning(
            f"Delivery {delivery_id} will retry "
            f"(celery retry {self.request.retries + 1}/{self.max_retries}): {outcome.error}"
        )
        raise TransientProcessingFailure(outcome.error)

    return {
        'delivery_id': outcome.delivery_id,
        'contact_id': outcome.contact_id,
        'created': outcome.created,
        'skipped': outcome.skipped,
        'failed': outcome.failed,
    }


@shared_task
def sweep_stale_deliveries(older_than_seconds=None):
    """
    Re-enqueue deliveries no consumer is going to pick up.

    Returns:
        Dict with the requeued and permanently failed delivery ids
    """
    config = get_ingestion_config()
    older_than = config.processing_timeout
    if older_than_seconds is not None:
        older_than = timedelta(seconds=older_than_seconds)

    result = requeue_stale_deliveries(older_than, config.max_attempts, config.retry_backoff_max)
    for delivery_id in result.requeued:
        process_delivery.delay(delivery_id)

    if result.requeued or result.failed:
        logger.info(
            f"Sweep requeued {len(result.requeued)} and failed {len(result.failed)} stale deliveries"
        )
    return {'requeued': result.requeued, 'failed': result.failed}

"""
Idempotency ledger for inbound deliveries.

Every status change is a compare-and-set UPDATE on the current status, so two
consumers holding the same delivery id can never both act on it.
"""
import logging
import uuid
from datetime import timedelta
from typing import List, NamedTuple, Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from webhooks.exceptions import DuplicateDelivery
from webhooks.models import DeliveryFailure, InboundDelivery

logger = logging.getLogger(__name__)


class SweepResult(NamedTuple):
    requeued: List[int]
    failed: List[int]


def resolve_idempotency_key(payload: dict) -> str:
    """
    Pick the key a delivery is deduplicated on.

    Caller-supplied idempotency_key wins, then submission_id. Without either a
    random key is generated, so such submissions are never deduplicated.
    """
    for field in ('idempotency_key', 'submission_id'):
        value = payload.get(field)
        if value is not None and str(value).strip():
            return str(value).strip()
    return str(uuid.uuid4())


def find_delivery(idempotency_key: str) -> Optional[InboundDelivery]:
    return InboundDelivery.objects.filter(idempotency_key=idempotency_key).first()


def record_delivery(
    idempotency_key: str,
    event_type: str,
    source_system: str,
    payload: dict,
    headers: Optional[dict] = None,
) -> InboundDelivery:
    """
    Create the pending ledger entry for a new delivery.

    Raises:
        DuplicateDelivery: a concurrent request recorded the same key first
    """
    try:
        with transaction.atomic():
            delivery = InboundDelivery.objects.create(
                idempotency_key=idempotency_key,
                event_type=event_type,
                source_system=source_system,
                raw_payload=payload,
                source_headers=headers,
                status=InboundDelivery.Status.PENDING,
                attempts=0,
            )
    except IntegrityError as e:
        existing = find_delivery(idempotency_key)
        if existing is None:
            raise
        raise DuplicateDelivery(existing) from e

    logger.info(f"Delivery {delivery.id} recorded for key {idempotency_key}")
    return delivery


def claim_delivery(delivery_id: int, max_attempts: int) -> Optional[InboundDelivery]:
    """
    Move a pending or failed delivery to processing and count the attempt.

    Returns:
        The claimed delivery, or None when it is already processed, currently
        being processed elsewhere, or out of attempts.
    """
    now = timezone.now()
    claimed = InboundDelivery.objects.filter(
        pk=delivery_id,
        status__in=[InboundDelivery.Status.PENDING, InboundDelivery.Status.FAILED],
        attempts__lt=max_attempts,
    ).update(
        status=InboundDelivery.Status.PROCESSING,
        attempts=F('attempts') + 1,
        claimed_at=now,
        updated_at=now,
    )
    if not claimed:
        return None
    return InboundDelivery.objects.get(pk=delivery_id)


def _transition(delivery: InboundDelivery, to_status: str, **fields) -> bool:
    if not delivery.can_transition_to(to_status):
        raise ValueError(
            f"Delivery {delivery.pk} cannot move from {delivery.status} to {to_status}"
        )
    updated = InboundDelivery.objects.filter(
        pk=delivery.pk,
        status=delivery.status,
    ).update(status=to_status, updated_at=timezone.now(), **fields)
    if not updated:
        logger.warning(
            f"Delivery {delivery.pk} changed concurrently, {delivery.status} -> {to_status} skipped"
        )
        return False

    delivery.status = to_status
    for name, value in fields.items():
        setattr(delivery, name, value)
    return True


def mark_processed(delivery: InboundDelivery) -> bool:
    return _transition(delivery, InboundDelivery.Status.PROCESSED, processed_at=timezone.now())


def mark_failed(delivery: InboundDelivery, error_message: str) -> bool:
    return _transition(delivery, InboundDelivery.Status.FAILED, error_message=error_message)


def record_terminal_failure(
    delivery: InboundDelivery,
    error_message: str,
    stack_trace: Optional[str] = None,
    reason: str = DeliveryFailure.Reason.PROCESSING,
) -> DeliveryFailure:
    """Keep a delivery that ran out of attempts around for manual inspection."""
    failure = DeliveryFailure.objects.create(
        delivery=delivery,
        event_type=delivery.event_type,
        payload=delivery.raw_payload,
        headers=delivery.source_headers,
        error_message=error_message,
        stack_trace=stack_trace,
        final_attempts=delivery.attempts,
        first_failed_at=delivery.received_at,
        final_failed_at=timezone.now(),
        failure_reason=reason,
    )
    logger.error(
        f"Delivery {delivery.pk} permanently failed after {delivery.attempts} attempts: {error_message}"
    )
    return failure


def _touch_idle(delivery_id: int, status: str, cutoff) -> bool:
    return bool(InboundDelivery.objects.filter(
        pk=delivery_id,
        status=status,
        updated_at__lt=cutoff,
    ).update(updated_at=timezone.now()))


def requeue_stale_deliveries(
    older_than: timedelta,
    max_attempts: int,
    retry_grace: timedelta = timedelta(0),
) -> SweepResult:
    """
    Recover deliveries that no consumer is going to pick up.

    - processing claims older than ``older_than`` (worker died) go back to
      pending, or to a terminal failed state once they have used all their
      attempts
    - pending entries untouched for ``older_than`` (enqueue lost, e.g. the
      broker was down when the submission was accepted)
    - failed entries below the attempt ceiling untouched for
      ``older_than + retry_grace`` (the scheduled retry was lost)

    Idle pending/failed entries keep their status and get a fresh updated_at,
    so the next sweep leaves them alone for another ``older_than``. The caller
    is responsible for enqueueing the requeued ids.
    """
    now = timezone.now()
    cutoff = now - older_than
    failed_cutoff = now - (older_than + retry_grace)

    idle = list(InboundDelivery.objects.filter(
        Q(status=InboundDelivery.Status.PENDING, updated_at__lt=cutoff)
        | Q(status=InboundDelivery.Status.FAILED, attempts__lt=max_attempts, updated_at__lt=failed_cutoff)
    ).order_by('updated_at').values_list('pk', 'status'))

    stale = InboundDelivery.objects.filter(
        status=InboundDelivery.Status.PROCESSING,
        claimed_at__lt=cutoff,
    ).order_by('claimed_at')

    requeued, failed = [], []
    for delivery in stale:
        if delivery.attempts >= max_attempts:
            message = f"Processing timed out after {delivery.attempts} attempts"
            with transaction.atomic():
                if mark_failed(delivery, message):
                    record_terminal_failure(delivery, message, reason=DeliveryFailure.Reason.TIMEOUT)
                    failed.append(delivery.pk)
        elif _transition(delivery, InboundDelivery.Status.PENDING, claimed_at=None):
            logger.info(f"Delivery {delivery.pk} requeued after stale claim")
            requeued.append(delivery.pk)

    for delivery_id, status in idle:
        row_cutoff = failed_cutoff if status == InboundDelivery.Status.FAILED else cutoff
        if _touch_idle(delivery_id, status, row_cutoff):
            logger.warning(f"Delivery {delivery_id} idle in {status}, enqueueing again")
            requeued.append(delivery_id)

    return SweepResult(requeued=requeued, failed=failed)

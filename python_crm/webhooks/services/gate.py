"""
Ingestion gate: authenticate, validate, deduplicate, record, enqueue.

No merge work happens here; the caller only learns whether the delivery was
accepted.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from webhooks.config import IngestionConfig
from webhooks.exceptions import DuplicateDelivery, InvalidPayload, Unauthorized
from webhooks.models import InboundDelivery
from webhooks.serializers import LeadFormSerializer
from webhooks.services.ledger import find_delivery, record_delivery, resolve_idempotency_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Receipt:
    delivery_id: int
    status: str
    duplicate: bool = False


def authenticate(provided_token: Optional[str], config: IngestionConfig) -> None:
    """
    Check the shared-secret token in constant time.

    Fails closed: with no secret configured every request is rejected.

    Raises:
        Unauthorized: secret unset, token missing, or token mismatch
    """
    expected = config.shared_secret
    if not expected:
        logger.error("Webhook shared secret is not configured, rejecting request")
        raise Unauthorized("Webhook shared secret not configured")
    if not hmac.compare_digest(expected.encode(), (provided_token or '').encode()):
        raise Unauthorized("Invalid webhook token")


def validate_submission(data) -> dict:
    """
    Validate the submission shape.

    Returns:
        The validated payload to store on the ledger

    Raises:
        InvalidPayload: with field -> list of messages
    """
    if not isinstance(data, dict):
        raise InvalidPayload({'non_field_errors': ['Expected a JSON object.']})
    serializer = LeadFormSerializer(data=data)
    if not serializer.is_valid():
        raise InvalidPayload({field: [str(message) for message in messages]
                              for field, messages in serializer.errors.items()})
    return serializer.to_payload()


def _receipt_for(delivery: InboundDelivery, duplicate: bool) -> Receipt:
    return Receipt(delivery_id=delivery.id, status=str(delivery.status), duplicate=duplicate)


def accept_submission(
    data,
    provided_token: Optional[str],
    config: IngestionConfig,
    enqueue: Callable[[int], object],
    headers: Optional[dict] = None,
) -> Receipt:
    """
    Accept one lead form submission.

    Workflow:
    1. Authenticate the shared secret
    2. Validate payload shape
    3. Resolve the idempotency key
    4. Return the existing receipt for a known key (no new entry, no enqueue)
    5. Otherwise record a pending ledger entry and enqueue exactly one processing unit.
       An enqueue failure is logged, not raised: the pending entry is picked up
       by the stale-delivery sweep

    Args:
        data: Request body (parsed lazily by the caller)
        provided_token: Value of the shared-secret header
        config: Ingestion configuration
        enqueue: Called with the new delivery id to dispatch processing
        headers: Request headers kept on the ledger entry for audit

    Raises:
        Unauthorized, InvalidPayload
    """
    authenticate(provided_token, config)

    payload = validate_submission(data() if callable(data) else data)
    idempotency_key = resolve_idempotency_key(payload)

    existing = find_delivery(idempotency_key)
    if existing is not None:
        logger.info(f"Duplicate delivery for key {idempotency_key}, receipt {existing.id}")
        return _receipt_for(existing, duplicate=True)

    try:
        delivery = record_delivery(
            idempotency_key=idempotency_key,
            event_type=config.event_type,
            source_system=config.source_system,
            payload=payload,
            headers=headers,
        )
    except DuplicateDelivery as e:
        logger.info(f"Concurrent duplicate for key {idempotency_key}, receipt {e.existing.id}")
        return _receipt_for(e.existing, duplicate=True)

    try:
        enqueue(delivery.id)
    except Exception:
        # The entry is already durable; the stale-delivery sweep enqueues it later
        logger.error(f"Delivery {delivery.id} recorded but could not be enqueued", exc_info=True)
    else:
        logger.info(f"Delivery {delivery.id} enqueued for processing")
    return _receipt_for(delivery, duplicate=False)

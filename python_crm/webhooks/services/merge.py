"""
Merge-upsert of inbound deliveries into contacts.

Inbound data is untrusted: it may fill gaps on an existing contact but never
overwrite what the sales team already knows.
"""
import logging
import traceback
from dataclasses import dataclass
from typing import Optional, Tuple

from django.db import transaction

from audit.services import record
from contacts.exceptions import DuplicateEmail
from contacts.models import Contact
from contacts.services.lifecycle import create_contact, find_active_contact
from contacts.signals import contact_merged
from webhooks.config import IngestionConfig, get_ingestion_config
from webhooks.exceptions import TransientProcessingFailure
from webhooks.models import InboundDelivery
from webhooks.services.ledger import (
    claim_delivery,
    mark_failed,
    mark_processed,
    record_terminal_failure,
)
from webhooks.services.normalization import normalize_contact_data

logger = logging.getLogger(__name__)

# Filled only while empty on the existing contact.
FILL_EMPTY_FIELDS = ('first_name', 'last_name', 'name', 'phone', 'job_title')

# First write wins: once known, company is authoritative.
PROTECTED_FIELDS = ('company',)


@dataclass
class MergeOutcome:
    delivery_id: int
    contact_id: Optional[int] = None
    created: bool = False
    skipped: bool = False
    failed: bool = False
    terminal: bool = False
    error: Optional[str] = None


def _resolve_source(source_system: str) -> str:
    try:
        return Contact.Source(source_system)
    except ValueError:
        return Contact.Source.OTHER


def _source_label(source: str) -> str:
    return Contact.Source(source).label


def merge_into_contact(contact: Contact, data: dict, delivery: InboundDelivery) -> Contact:
    """
    Non-destructively merge normalized inbound data into an existing contact.

    - Empty scalar fields are filled, populated ones are kept
    - company is never replaced once set
    - notes are appended as a source-tagged paragraph
    - source_meta gains new keys; existing keys keep their values
    - status is left alone
    """
    updated_fields = []

    for field in FILL_EMPTY_FIELDS + PROTECTED_FIELDS:
        incoming = data.get(field)
        if incoming and not getattr(contact, field):
            setattr(contact, field, incoming)
            updated_fields.append(field)

    label = _source_label(_resolve_source(delivery.source_system))
    incoming_notes = data.get('notes')
    if incoming_notes:
        line = f"{label}: {incoming_notes}"
        contact.notes = f"{contact.notes}\n\n{line}" if contact.notes else line
        updated_fields.append('notes')

    incoming_meta = data.get('source_meta') or {}
    existing_meta = contact.source_meta or {}
    merged_meta = dict(existing_meta)
    for key, value in incoming_meta.items():
        merged_meta.setdefault(key, value)
    if merged_meta != existing_meta:
        contact.source_meta = merged_meta
        updated_fields.append('source_meta')

    if updated_fields:
        contact.save(update_fields=updated_fields + ['updated_at'])

    record(
        contact,
        f"Contact updated from {label.lower()} submission",
        {
            'delivery_id': delivery.pk,
            'utm_data': incoming_meta,
            'updated_fields': updated_fields,
        },
    )
    transaction.on_commit(lambda: contact_merged.send(sender=Contact, contact=contact), robust=True)
    logger.info(f"Delivery {delivery.pk}: merged into contact {contact.pk}, updated {updated_fields}")
    return contact


def create_from_delivery(data: dict, delivery: InboundDelivery) -> Contact:
    """
    Create a new lead from normalized inbound data.

    Raises:
        DuplicateEmail: a concurrent writer created an active contact with the same email
    """
    source = _resolve_source(delivery.source_system)
    contact = create_contact(status=Contact.Status.LEAD, source=source, **data)

    record(
        contact,
        f"Lead created from {_source_label(source).lower()} submission",
        {
            'delivery_id': delivery.pk,
            'utm_data': data.get('source_meta') or {},
            'source': source,
        },
    )
    logger.info(f"Delivery {delivery.pk}: created contact {contact.pk}")
    return contact


def upsert_contact(delivery: InboundDelivery, config: IngestionConfig) -> Tuple[Contact, bool]:
    """
    Load or create the contact for a delivery and merge its data.

    Must run inside a transaction. Without an email there is no reliable match
    key, so a new contact is always created.

    Returns:
        Tuple of (contact, created)
    """
    data = normalize_contact_data(delivery.raw_payload, default_owner_id=config.default_owner_id)
    email = data.get('email')

    contact = find_active_contact(email, lock=True) if email else None
    if contact is None:
        try:
            return create_from_delivery(data, delivery), True
        except DuplicateEmail as e:
            logger.info(
                f"Delivery {delivery.pk}: lost create race for {email} "
                f"to contact {e.existing_id}, merging instead"
            )
            contact = find_active_contact(email, lock=True)
            if contact is None:
                raise

    return merge_into_contact(contact, data, delivery), False


def _log_unclaimable(delivery_id: int) -> None:
    current = InboundDelivery.objects.filter(pk=delivery_id).values_list('status', 'attempts').first()
    if current is None:
        logger.error(f"Delivery {delivery_id} not found in database")
        return
    status, attempts = current
    if status == InboundDelivery.Status.PROCESSED:
        logger.info(f"Delivery {delivery_id} already processed, skipping")
    else:
        logger.warning(f"Delivery {delivery_id} not claimable (status={status}, attempts={attempts}), skipping")


def process_inbound_delivery(delivery_id: int, config: Optional[IngestionConfig] = None) -> MergeOutcome:
    """
    Process one ledger entry end to end.

    Workflow:
    1. Claim the entry (pending/failed -> processing, attempts + 1); anything
       else, including an already processed entry, is a no-op
    2. In one transaction: normalize, load or create, merge, audit, mark processed
    3. On error: roll back, re-read the status (a failed COMMIT leaves the
       in-memory status ahead of the row), mark failed, and once the attempt
       ceiling is reached record a terminal DeliveryFailure

    Args:
        delivery_id: ID of the InboundDelivery to process
        config: Ingestion configuration; the process-wide one by default

    Returns:
        MergeOutcome describing what happened
    """
    config = config or get_ingestion_config()

    delivery = claim_delivery(delivery_id, config.max_attempts)
    if delivery is None:
        _log_unclaimable(delivery_id)
        return MergeOutcome(delivery_id=delivery_id, skipped=True)

    logger.info(f"Processing delivery {delivery_id}, attempt {delivery.attempts}/{config.max_attempts}")

    try:
        with transaction.atomic():
            contact, created = upsert_contact(delivery, config)
            if not mark_processed(delivery):
                raise TransientProcessingFailure(f"Delivery {delivery_id} claim lost before commit")
    except Exception as e:
        error = f"{type(e).__name__}: {e}"
        # The in-memory status may be ahead of the database when the commit itself failed
        delivery.refresh_from_db(fields=['status'])
        if delivery.status == InboundDelivery.Status.PROCESSED:
            logger.error(f"Delivery {delivery_id} committed before the error was raised: {error}", exc_info=True)
            return MergeOutcome(delivery_id=delivery_id, skipped=True, error=error)
        terminal = delivery.attempts >= config.max_attempts
        with transaction.atomic():
            if mark_failed(delivery, error) and terminal:
                record_terminal_failure(delivery, error, traceback.format_exc())
        logger.error(
            f"Delivery {delivery_id} FAILED on attempt {delivery.attempts}/{config.max_attempts}: {error}",
            exc_info=True
        )
        return MergeOutcome(delivery_id=delivery_id, failed=True, terminal=terminal, error=error)

    logger.info(f"Delivery {delivery_id} PROCESSED (contact {contact.pk}, created={created})")
    return MergeOutcome(delivery_id=delivery_id, contact_id=contact.pk, created=created)

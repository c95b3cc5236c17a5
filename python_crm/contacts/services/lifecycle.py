"""
Uniqueness and soft-delete lifecycle for contacts.

The partial unique constraint on ``email_normalized`` (active rows only) is
the sole arbiter between concurrent writers; this module turns its violations
into DuplicateEmail / RestoreConflict instead of raw IntegrityErrors.
"""
import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from audit.services import SYSTEM, Actor, record
from contacts.exceptions import DuplicateEmail, RestoreConflict
from contacts.models import Contact
from contacts.services.identity import normalize_email
from contacts.signals import contact_created, contact_deleted, contact_restored

logger = logging.getLogger(__name__)


def find_active_contact(email: Optional[str], lock: bool = False) -> Optional[Contact]:
    """
    Look up the non-deleted contact holding ``email``.

    Args:
        email: Raw or normalized email; blank values never match
        lock: Take a row lock (SELECT ... FOR UPDATE); caller must be in a transaction
    """
    queryset = Contact.objects.active().with_email(email)
    if lock:
        queryset = queryset.select_for_update()
    return queryset.first()


def ensure_email_available(email: Optional[str], exclude_pk=None) -> None:
    """Raise DuplicateEmail if an active contact other than ``exclude_pk`` holds ``email``."""
    queryset = Contact.objects.active().with_email(email)
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)
    existing = queryset.first()
    if existing is not None:
        raise DuplicateEmail(normalize_email(email), existing.pk)


def create_contact(**fields) -> Contact:
    """
    Insert a new contact.

    The insert runs in its own savepoint so a uniqueness violation leaves the
    caller's transaction usable.

    Raises:
        DuplicateEmail: another active contact already holds the email
    """
    contact = Contact(**fields)
    try:
        with transaction.atomic():
            contact.save()
    except IntegrityError as e:
        existing = find_active_contact(contact.email)
        if existing is None:
            raise
        logger.info(f"Create rejected, email already held by contact {existing.pk}")
        raise DuplicateEmail(normalize_email(contact.email), existing.pk) from e

    transaction.on_commit(lambda: contact_created.send(sender=Contact, contact=contact), robust=True)
    logger.info(f"Contact {contact.pk} created")
    return contact


def soft_delete_contact(contact_id, actor: Actor = SYSTEM) -> Contact:
    """Mark a contact deleted. Deleting an already deleted contact is a no-op."""
    with transaction.atomic():
        contact = Contact.objects.select_for_update().get(pk=contact_id)
        if contact.is_deleted:
            return contact

        contact.deleted_at = timezone.now()
        contact.save(update_fields=['deleted_at', 'updated_at'])
        record(contact, 'Contact deleted', actor=actor)

    transaction.on_commit(lambda: contact_deleted.send(sender=Contact, contact=contact), robust=True)
    logger.info(f"Contact {contact.pk} soft-deleted")
    return contact


def restore_contact(contact_id, actor: Actor = SYSTEM) -> Contact:
    """
    Restore a soft-deleted contact.

    Restoring an active contact is a no-op.

    Raises:
        RestoreConflict: another active contact has claimed the email meanwhile
    """
    with transaction.atomic():
        contact = Contact.objects.select_for_update().get(pk=contact_id)
        if not contact.is_deleted:
            return contact

        if contact.email_normalized:
            conflict = (
                Contact.objects.active()
                .filter(email_normalized=contact.email_normalized)
                .exclude(pk=contact.pk)
                .first()
            )
            if conflict is not None:
                logger.warning(
                    f"Restore of contact {contact.pk} blocked by active contact {conflict.pk}"
                )
                raise RestoreConflict(contact.pk, conflict.pk)

        contact.deleted_at = None
        try:
            with transaction.atomic():
                contact.save(update_fields=['deleted_at', 'updated_at'])
        except IntegrityError as e:
            conflict = find_active_contact(contact.email)
            raise RestoreConflict(contact.pk, conflict.pk if conflict else None) from e

        record(contact, 'Contact restored', actor=actor)

    transaction.on_commit(lambda: contact_restored.send(sender=Contact, contact=contact), robust=True)
    logger.info(f"Contact {contact.pk} restored")
    return contact

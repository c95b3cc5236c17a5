"""
Tests for contact email uniqueness and the soft-delete lifecycle.
"""
import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from audit.models import AuditEntry
from audit.services import Actor
from contacts.exceptions import DuplicateEmail, RestoreConflict
from contacts.models import Contact
from contacts.services.lifecycle import (
    create_contact,
    ensure_email_available,
    find_active_contact,
    restore_contact,
    soft_delete_contact,
)
from contacts.signals import contact_deleted, contact_restored


@pytest.mark.django_db
class TestEmailUniqueness:
    """Normalized email is unique among non-deleted contacts only."""

    def test_email_normalized_on_save(self):
        contact = Contact.objects.create(email='  Jane@X.COM ')
        assert contact.email_normalized == 'jane@x.com'

    def test_blank_email_not_indexed(self):
        first = Contact.objects.create(email='', phone='1')
        second = Contact.objects.create(email=None, phone='2')
        assert first.email_normalized is None
        assert second.email_normalized is None

    def test_case_insensitive_duplicate_rejected_by_database(self):
        Contact.objects.create(email='jane@x.com')

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Contact.objects.create(email='JANE@x.com')

    def test_deleted_contact_frees_email(self):
        Contact.objects.create(email='jane@x.com', deleted_at=timezone.now())

        contact = Contact.objects.create(email='jane@x.com')

        assert contact.pk is not None

    def test_many_deleted_contacts_may_share_email(self):
        Contact.objects.create(email='jane@x.com', deleted_at=timezone.now())
        Contact.objects.create(email='jane@x.com', deleted_at=timezone.now())

        assert Contact.objects.deleted().with_email('jane@x.com').count() == 2

    def test_update_of_email_renormalizes(self):
        contact = Contact.objects.create(email='jane@x.com')
        contact.email = 'Jane.Smith@X.com'
        contact.save(update_fields=['email'])

        contact.refresh_from_db()
        assert contact.email_normalized == 'jane.smith@x.com'


@pytest.mark.django_db
class TestCreateContact:

    def test_create(self):
        contact = create_contact(email='jane@x.com', name='Jane')
        assert find_active_contact('JANE@x.com') == contact

    def test_duplicate_raises_domain_error(self):
        existing = create_contact(email='jane@x.com')

        with pytest.raises(DuplicateEmail) as exc_info:
            create_contact(email=' Jane@X.com')

        assert exc_info.value.existing_id == existing.pk
        assert exc_info.value.email == 'jane@x.com'
        assert Contact.objects.count() == 1

    def test_ensure_email_available(self):
        existing = create_contact(email='jane@x.com')

        ensure_email_available('other@x.com')
        ensure_email_available('jane@x.com', exclude_pk=existing.pk)
        with pytest.raises(DuplicateEmail):
            ensure_email_available('Jane@x.com')

    def test_find_ignores_deleted_and_blank(self):
        Contact.objects.create(email='jane@x.com', deleted_at=timezone.now())

        assert find_active_contact('jane@x.com') is None
        assert find_active_contact('') is None
        assert find_active_contact(None) is None


@pytest.mark.django_db
class TestSoftDelete:

    def test_soft_delete_marks_and_audits(self):
        contact = create_contact(email='jane@x.com')

        soft_delete_contact(contact.pk, actor=Actor.user(42))

        contact.refresh_from_db()
        assert contact.is_deleted
        entry = AuditEntry.objects.get(subject_id=str(contact.pk))
        assert entry.description == 'Contact deleted'
        assert entry.actor_type == AuditEntry.ActorType.USER
        assert entry.actor_id == 42

    def test_soft_delete_twice_is_a_no_op(self):
        contact = create_contact(email='jane@x.com')
        soft_delete_contact(contact.pk)
        first_deleted_at = Contact.objects.get(pk=contact.pk).deleted_at

        soft_delete_contact(contact.pk)

        assert Contact.objects.get(pk=contact.pk).deleted_at == first_deleted_at
        assert AuditEntry.objects.filter(subject_id=str(contact.pk)).count() == 1

    def test_deleted_signal(self, django_capture_on_commit_callbacks):
        contact = create_contact(email='jane@x.com')
        received = []

        def handler(sender, contact, **kwargs):
            received.append(contact.pk)

        contact_deleted.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                soft_delete_contact(contact.pk)
        finally:
            contact_deleted.disconnect(handler)

        assert received == [contact.pk]


@pytest.mark.django_db
class TestRestore:

    def test_restore_when_email_free(self):
        contact = create_contact(email='jane@x.com')
        soft_delete_contact(contact.pk)

        restored = restore_contact(contact.pk)

        assert not restored.is_deleted
        descriptions = list(
            AuditEntry.objects.filter(subject_id=str(contact.pk)).values_list('description', flat=True)
        )
        assert descriptions == ['Contact deleted', 'Contact restored']

    def test_restore_blocked_by_active_holder(self):
        contact = create_contact(email='jane@x.com')
        soft_delete_contact(contact.pk)
        holder = create_contact(email='JANE@x.com')

        with pytest.raises(RestoreConflict) as exc_info:
            restore_contact(contact.pk)

        assert exc_info.value.contact_id == contact.pk
        assert exc_info.value.conflicting_id == holder.pk
        assert str(exc_info.value) == 'Cannot restore contact; another active contact has the same email.'
        contact.refresh_from_db()
        assert contact.is_deleted

    def test_restore_without_email_never_conflicts(self):
        contact = create_contact(phone='555')
        soft_delete_contact(contact.pk)
        create_contact(phone='555')

        assert not restore_contact(contact.pk).is_deleted

    def test_restore_active_contact_is_a_no_op(self):
        contact = create_contact(email='jane@x.com')

        restore_contact(contact.pk)

        assert AuditEntry.objects.filter(subject_id=str(contact.pk)).count() == 0

    def test_restored_signal(self, django_capture_on_commit_callbacks):
        contact = create_contact(email='jane@x.com')
        soft_delete_contact(contact.pk)
        received = []

        def handler(sender, contact, **kwargs):
            received.append(contact.pk)

        contact_restored.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                restore_contact(contact.pk)
        finally:
            contact_restored.disconnect(handler)

        assert received == [contact.pk]

"""
Data models for CRM contacts.
"""
from django.conf import settings
from django.db import models
from django.db.models import Q

from contacts.services.identity import normalize_email


class ContactQuerySet(models.QuerySet):

    def active(self):
        return self.filter(deleted_at__isnull=True)

    def deleted(self):
        return self.filter(deleted_at__isnull=False)

    def with_email(self, email):
        normalized = normalize_email(email)
        if normalized is None:
            return self.none()
        return self.filter(email_normalized=normalized)


class Contact(models.Model):
    """
    A person the sales team tracks, created by hand or from inbound leads.

    The normalized email is unique among non-deleted contacts only: a
    soft-deleted contact never blocks reuse of its address.
    """

    class Status(models.TextChoices):
        LEAD = 'lead', 'Lead'
        QUALIFIED = 'qualified', 'Qualified'
        CUSTOMER = 'customer', 'Customer'
        ARCHIVED = 'archived', 'Archived'

    class Source(models.TextChoices):
        WEBSITE_FORM = 'website_form', 'Website Form'
        META_ADS = 'meta_ads', 'Meta Ads'
        X = 'x', 'X (Twitter)'
        INSTAGRAM = 'instagram', 'Instagram'
        REFERRAL = 'referral', 'Referral'
        MANUAL = 'manual', 'Manual Entry'
        OTHER = 'other', 'Other'

    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    name = models.CharField(max_length=255, null=True, blank=True)
    email = models.EmailField(max_length=255, null=True, blank=True)
    email_normalized = models.CharField(max_length=255, null=True, blank=True, editable=False)
    phone = models.CharField(max_length=50, null=True, blank=True)
    company = models.CharField(max_length=255, null=True, blank=True)
    job_title = models.CharField(max_length=255, null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.LEAD,
        db_index=True
    )
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.MANUAL,
        db_index=True
    )
    source_meta = models.JSONField(default=dict, blank=True)
    notes = models.TextField(null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='owned_contacts'
    )
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ContactQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['email_normalized'],
                condition=Q(deleted_at__isnull=True),
                name='contacts_email_normalized_unique_active',
            ),
        ]
        indexes = [
            models.Index(fields=['email_normalized'], name='contacts_email_norm_idx'),
        ]

    def __str__(self):
        return f"Contact {self.id} - {self.name or self.email or self.phone}"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def save(self, *args, **kwargs):
        self.email_normalized = normalize_email(self.email)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'email' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'email_normalized'}
        super().save(*args, **kwargs)

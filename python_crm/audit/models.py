"""
Data models for the audit trail.
"""
from django.db import models
from django.utils import timezone


class AuditEntry(models.Model):
    """
    Append-only fact describing one mutation of a domain record.

    Rows are written once and never updated or deleted by application code;
    downstream reporting reads them.
    """

    class ActorType(models.TextChoices):
        SYSTEM = 'system', 'System'
        USER = 'user', 'User'

    subject_type = models.CharField(max_length=100)
    subject_id = models.CharField(max_length=64)
    description = models.CharField(max_length=255)
    actor_type = models.CharField(
        max_length=10,
        choices=ActorType.choices,
        default=ActorType.SYSTEM,
    )
    actor_id = models.PositiveBigIntegerField(null=True, blank=True)
    properties = models.JSONField(default=dict, blank=True)
    occurred_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['occurred_at', 'id']
        indexes = [
            models.Index(fields=['subject_type', 'subject_id'], name='audit_subject_idx'),
        ]

    def __str__(self):
        return f"{self.subject_type}:{self.subject_id} - {self.description}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit entries are append-only and cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit entries are append-only and cannot be deleted")

"""
Data models for inbound webhook ingestion.
"""
from django.db import models


class InboundDelivery(models.Model):
    """
    One accepted delivery of an external event: the idempotency ledger.

    The idempotency key is unique for all time, so a repeated delivery can
    never create a second entry or trigger processing again.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        PROCESSED = 'processed', 'Processed'
        FAILED = 'failed', 'Failed'

    # Allowed status moves; PROCESSED is terminal.
    TRANSITIONS = {
        Status.PENDING: {Status.PROCESSING},
        Status.PROCESSING: {Status.PROCESSED, Status.FAILED, Status.PENDING},
        Status.FAILED: {Status.PROCESSING},
        Status.PROCESSED: set(),
    }

    idempotency_key = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100, db_index=True)
    source_system = models.CharField(max_length=50, db_index=True)
    raw_payload = models.JSONField()
    source_headers = models.JSONField(null=True, blank=True)
    received_at = models.DateTimeField(auto_now_add=True, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    attempts = models.PositiveIntegerField(default=0)
    error_message = models.TextField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-received_at']
        verbose_name_plural = 'inbound deliveries'
        indexes = [
            models.Index(fields=['status', 'attempts'], name='webhooks_status_attempts_idx'),
            models.Index(fields=['status', 'claimed_at'], name='webhooks_status_claimed_idx'),
        ]

    def __str__(self):
        return f"Delivery {self.id} ({self.idempotency_key}) - {self.status}"

    def can_transition_to(self, status) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())


class DeliveryFailure(models.Model):
    """
    Terminal failure record for a delivery that exhausted its attempts.
    Kept for operator inspection; never removed by the pipeline.
    """

    class Reason(models.TextChoices):
        PROCESSING = 'processing', 'Processing'
        TIMEOUT = 'timeout', 'Timeout'
        UNKNOWN = 'unknown', 'Unknown'

    delivery = models.ForeignKey(
        InboundDelivery,
        on_delete=models.CASCADE,
        related_name='failures'
    )
    event_type = models.CharField(max_length=100, null=True, blank=True)
    payload = models.JSONField()
    headers = models.JSONField(null=True, blank=True)
    error_message = models.TextField()
    stack_trace = models.TextField(null=True, blank=True)
    final_attempts = models.PositiveIntegerField()
    first_failed_at = models.DateTimeField()
    final_failed_at = models.DateTimeField(db_index=True)
    failure_reason = models.CharField(
        max_length=20,
        choices=Reason.choices,
        default=Reason.UNKNOWN,
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-final_failed_at']

    def __str__(self):
        return f"Failure for Delivery {self.delivery_id} - {self.failure_reason}"

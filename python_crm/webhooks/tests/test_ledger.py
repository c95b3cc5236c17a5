"""
Unit tests for the idempotency ledger.
"""
from datetime import timedelta

import pytest
from django.utils import timezone

from webhooks.exceptions import DuplicateDelivery
from webhooks.models import DeliveryFailure, InboundDelivery
from webhooks.services.ledger import (
    claim_delivery,
    find_delivery,
    mark_failed,
    mark_processed,
    record_delivery,
    record_terminal_failure,
    requeue_stale_deliveries,
)


def _record(key='key-1', payload=None):
    return record_delivery(
        idempotency_key=key,
        event_type='lead.form.submitted',
        source_system='website_form',
        payload=payload or {'email': 'ada@example.com'},
        headers={'user-agent': 'FormBuilder/2.1'},
    )


def _claimed_at(delivery, age):
    InboundDelivery.objects.filter(pk=delivery.pk).update(claimed_at=timezone.now() - age)


@pytest.mark.django_db
class TestRecordDelivery:
    """Tests for ledger entry creation."""

    def test_new_entry_is_pending(self):
        delivery = _record()

        assert delivery.status == InboundDelivery.Status.PENDING
        assert delivery.attempts == 0
        assert delivery.received_at is not None
        assert delivery.source_headers == {'user-agent': 'FormBuilder/2.1'}
        assert find_delivery('key-1') == delivery

    def test_repeated_key_raises_duplicate(self):
        original = _record()

        with pytest.raises(DuplicateDelivery) as exc_info:
            _record(payload={'email': 'other@example.com'})

        assert exc_info.value.existing.pk == original.pk
        assert InboundDelivery.objects.count() == 1

    def test_find_unknown_key(self):
        assert find_delivery('missing') is None


@pytest.mark.django_db
class TestClaimDelivery:
    """Tests for the pending/failed -> processing claim."""

    def test_claim_pending(self):
        delivery = _record()

        claimed = claim_delivery(delivery.id, max_attempts=5)

        assert claimed.status == InboundDelivery.Status.PROCESSING
        assert claimed.attempts == 1
        assert claimed.claimed_at is not None

    def test_second_claim_fails_while_processing(self):
        delivery = _record()
        claim_delivery(delivery.id, max_attempts=5)

        assert claim_delivery(delivery.id, max_attempts=5) is None

    def test_processed_is_never_claimed(self):
        delivery = _record()
        mark_processed(claim_delivery(delivery.id, max_attempts=5))

        assert claim_delivery(delivery.id, max_attempts=5) is None

    def test_failed_is_claimed_again(self):
        delivery = _record()
        mark_failed(claim_delivery(delivery.id, max_attempts=5), 'boom')

        claimed = claim_delivery(delivery.id, max_attempts=5)

        assert claimed.attempts == 2
        assert claimed.status == InboundDelivery.Status.PROCESSING

    def test_ceiling_blocks_claim(self):
        delivery = _record()
        mark_failed(claim_delivery(delivery.id, max_attempts=1), 'boom')

        assert claim_delivery(delivery.id, max_attempts=1) is None


@pytest.mark.django_db
class TestTransitions:
    """Tests for compare-and-set status transitions."""

    def test_mark_processed(self):
        delivery = claim_delivery(_record().id, max_attempts=5)

        assert mark_processed(delivery) is True

        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.PROCESSED
        assert delivery.processed_at is not None

    def test_mark_failed_keeps_error(self):
        delivery = claim_delivery(_record().id, max_attempts=5)

        assert mark_failed(delivery, 'ValueError: bad') is True

        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.FAILED
        assert delivery.error_message == 'ValueError: bad'

    def test_processed_is_terminal(self):
        delivery = claim_delivery(_record().id, max_attempts=5)
        mark_processed(delivery)

        with pytest.raises(ValueError):
            mark_failed(delivery, 'late failure')

    def test_pending_cannot_jump_to_processed(self):
        delivery = _record()

        with pytest.raises(ValueError):
            mark_processed(delivery)

    def test_stale_instance_loses_race(self):
        delivery = claim_delivery(_record().id, max_attempts=5)
        InboundDelivery.objects.filter(pk=delivery.pk).update(status=InboundDelivery.Status.PROCESSED)

        assert mark_failed(delivery, 'too late') is False

        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.PROCESSED


@pytest.mark.django_db
class TestTerminalFailure:

    def test_failure_snapshot(self):
        delivery = claim_delivery(_record().id, max_attempts=5)

        failure = record_terminal_failure(delivery, 'RuntimeError: boom', 'Traceback ...')

        assert failure.delivery == delivery
        assert failure.event_type == 'lead.form.submitted'
        assert failure.payload == {'email': 'ada@example.com'}
        assert failure.headers == {'user-agent': 'FormBuilder/2.1'}
        assert failure.final_attempts == 1
        assert failure.first_failed_at == delivery.received_at
        assert failure.failure_reason == DeliveryFailure.Reason.PROCESSING


@pytest.mark.django_db
class TestRequeueStaleDeliveries:
    """Tests for crash recovery of stuck processing claims."""

    def test_stale_claim_requeued(self):
        delivery = claim_delivery(_record().id, max_attempts=5)
        _claimed_at(delivery, timedelta(minutes=30))

        result = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5)

        assert result.requeued == [delivery.pk]
        assert result.failed == []
        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.PENDING
        assert delivery.claimed_at is None
        assert delivery.attempts == 1

    def test_fresh_claim_left_alone(self):
        delivery = claim_delivery(_record().id, max_attempts=5)

        result = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5)

        assert result.requeued == []
        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.PROCESSING

    def test_exhausted_stale_claim_fails_with_timeout(self):
        delivery = claim_delivery(_record().id, max_attempts=1)
        _claimed_at(delivery, timedelta(hours=1))

        result = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=1)

        assert result.failed == [delivery.pk]
        assert result.requeued == []
        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.FAILED
        failure = DeliveryFailure.objects.get(delivery=delivery)
        assert failure.failure_reason == DeliveryFailure.Reason.TIMEOUT

    def test_other_statuses_ignored(self):
        pending = _record('k-1')
        processed = claim_delivery(_record('k-2').id, max_attempts=5)
        mark_processed(processed)
        _claimed_at(processed, timedelta(hours=1))

        result = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5)

        assert result.requeued == []
        pending.refresh_from_db()
        assert pending.status == InboundDelivery.Status.PENDING


def _idle_for(delivery, age):
    InboundDelivery.objects.filter(pk=delivery.pk).update(updated_at=timezone.now() - age)


@pytest.mark.django_db
class TestRequeueIdleDeliveries:
    """Entries nobody is going to process: lost enqueue or lost retry."""

    def test_pending_never_enqueued_is_requeued(self):
        delivery = _record()
        _idle_for(delivery, timedelta(minutes=30))

        result = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5)

        assert result.requeued == [delivery.pk]
        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.PENDING
        assert delivery.attempts == 0

    def test_requeued_pending_waits_for_next_window(self):
        delivery = _record()
        _idle_for(delivery, timedelta(minutes=30))

        first = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5)
        second = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5)

        assert first.requeued == [delivery.pk]
        assert second.requeued == []

    def test_recent_pending_left_alone(self):
        _record()

        assert requeue_stale_deliveries(timedelta(minutes=15), max_attempts=5).requeued == []

    def test_failed_with_lost_retry_is_requeued(self):
        delivery = claim_delivery(_record().id, max_attempts=5)
        mark_failed(delivery, 'RuntimeError: boom')
        _idle_for(delivery, timedelta(hours=2))

        result = requeue_stale_deliveries(
            timedelta(minutes=15), max_attempts=5, retry_grace=timedelta(hours=1)
        )

        assert result.requeued == [delivery.pk]
        delivery.refresh_from_db()
        assert delivery.status == InboundDelivery.Status.FAILED
        assert claim_delivery(delivery.pk, max_attempts=5) is not None

    def test_failed_within_retry_grace_left_alone(self):
        delivery = claim_delivery(_record().id, max_attempts=5)
        mark_failed(delivery, 'RuntimeError: boom')
        _idle_for(delivery, timedelta(minutes=30))

        result = requeue_stale_deliveries(
            timedelta(minutes=15), max_attempts=5, retry_grace=timedelta(hours=1)
        )

        assert result.requeued == []

    def test_exhausted_failed_not_requeued(self):
        delivery = claim_delivery(_record().id, max_attempts=1)
        mark_failed(delivery, 'RuntimeError: boom')
        _idle_for(delivery, timedelta(days=1))

        result = requeue_stale_deliveries(timedelta(minutes=15), max_attempts=1)

        assert result.requeued == []
        assert result.failed == []

    def test_requeued_claim_not_swept_twice(self):
        delivery = claim_delivery(_record().id, max_attempts=5)
        _claimed_at(delivery, timedelta(minutes=30))

        result = requeue_stale_deliveries(timedelta(0), max_attempts=5)

        assert result.requeued == [delivery.pk]

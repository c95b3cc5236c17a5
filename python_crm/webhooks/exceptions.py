"""
Errors raised while accepting and processing inbound deliveries.
"""


class Unauthorized(Exception):
    """Raised when the shared-secret token is missing, wrong, or not configured."""
    pass


class InvalidPayload(Exception):
    """Raised when a submission fails shape validation; carries field -> messages."""

    def __init__(self, errors: dict):
        self.errors = errors
        super().__init__(f"Invalid payload: {sorted(errors)}")


class DuplicateDelivery(Exception):
    """Raised when an idempotency key was already recorded by a concurrent request."""

    def __init__(self, existing):
        self.existing = existing
        super().__init__(f"Delivery already recorded: {existing.idempotency_key}")


class TransientProcessingFailure(Exception):
    """Raised by the worker when a delivery failed but may be retried."""
    pass

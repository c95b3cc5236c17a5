"""
Payload shape validation for the lead form webhook.
"""
from rest_framework import serializers

from webhooks.services.normalization import normalize_phone


def _text(max_length: int, too_long: str) -> serializers.CharField:
    return serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        trim_whitespace=False,
        max_length=max_length,
        error_messages={'max_length': too_long},
    )


class LeadFormSerializer(serializers.Serializer):
    """
    Inbound lead form submission.

    Every field is optional, but at least one of email, phone, or a name
    (name or first/last name) must be present.
    """

    first_name = _text(255, 'First name is too long.')
    last_name = _text(255, 'Last name is too long.')
    name = _text(255, 'Name is too long.')
    email = serializers.EmailField(
        required=False,
        allow_null=True,
        allow_blank=True,
        max_length=255,
        error_messages={
            'invalid': 'Please provide a valid email address.',
            'max_length': 'Email address is too long.',
        },
    )
    phone = _text(50, 'Phone number is too long.')
    company = _text(255, 'Company name is too long.')
    job_title = _text(255, 'Job title is too long.')
    message = _text(2000, 'Message is too long.')
    notes = _text(2000, 'Notes are too long.')
    utm_source = _text(255, 'UTM source is too long.')
    utm_medium = _text(255, 'UTM medium is too long.')
    utm_campaign = _text(255, 'UTM campaign is too long.')
    utm_term = _text(255, 'UTM term is too long.')
    utm_content = _text(255, 'UTM content is too long.')
    idempotency_key = _text(255, 'Idempotency key is too long.')
    submission_id = _text(255, 'Submission ID is too long.')
    consent = serializers.BooleanField(required=False, allow_null=True)

    def validate(self, attrs):
        def present(field):
            return bool((attrs.get(field) or '').strip())

        has_name = present('name') or present('first_name') or present('last_name')
        # A phone only identifies someone if it still has digits once normalized
        has_phone = normalize_phone(attrs.get('phone')) is not None
        if not (present('email') or has_phone or has_name):
            raise serializers.ValidationError(
                {'contact_info': ['At least one of email, phone, or name is required.']}
            )
        return attrs

    def to_payload(self) -> dict:
        """Validated data with null fields dropped, as stored on the ledger."""
        return {key: value for key, value in self.validated_data.items() if value is not None}

"""
Normalization service for inbound lead payloads.
"""
import logging
import re
from typing import Any, Optional

from contacts.services.identity import derive_display_name, normalize_email

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ('first_name', 'last_name', 'name', 'email', 'phone', 'company', 'job_title')

# Delivery bookkeeping and free text; never copied into source_meta.
CONTROL_FIELDS = ('message', 'notes', 'idempotency_key', 'submission_id', 'consent')

PHONE_MAX_LENGTH = 50

_PHONE_STRIP = re.compile(r'[^\d+]')


def normalize_value(value: Any) -> Any:
    """Trim whitespace from strings; other values pass through."""
    if isinstance(value, str):
        return value.strip()
    return value


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def normalize_phone(value: Any) -> Optional[str]:
    """
    Reduce a phone number to digits and '+'.

    '+1-234-567-890' -> '+1234567890'. Values with no digits left become None.
    """
    if value is None:
        return None
    stripped = _PHONE_STRIP.sub('', str(value))[:PHONE_MAX_LENGTH]
    if not any(ch.isdigit() for ch in stripped):
        return None
    return stripped


def extract_attribution(payload: dict) -> dict:
    """
    Collect the non-identity fields (campaign tracking parameters) of a payload.

    Empty values are dropped.
    """
    meta = {}
    for key, value in payload.items():
        if key in IDENTITY_FIELDS or key in CONTROL_FIELDS:
            continue
        value = normalize_value(value)
        if value is None or value == '':
            continue
        meta[key] = value
    return meta


def normalize_contact_data(payload: dict, default_owner_id: Optional[int] = None) -> dict:
    """
    Turn a stored delivery payload into contact fields.

    Operations:
    - Trim every string field
    - Lowercase and trim the email
    - Strip phone separators
    - Use the explicit name, else join first and last name
    - Take notes from 'message', falling back to 'notes'
    - Gather attribution fields into source_meta

    Args:
        payload: Raw payload as stored on the ledger entry
        default_owner_id: Owner assigned to new contacts, if configured

    Returns:
        Contact field values; empty fields are omitted, source_meta is always present
    """
    if not payload:
        payload = {}

    first_name = _clean(payload.get('first_name'))
    last_name = _clean(payload.get('last_name'))

    data = {
        'first_name': first_name,
        'last_name': last_name,
        'name': derive_display_name(first_name, last_name, _clean(payload.get('name'))),
        'email': normalize_email(payload.get('email')),
        'phone': normalize_phone(payload.get('phone')),
        'company': _clean(payload.get('company')),
        'job_title': _clean(payload.get('job_title')),
        'notes': _clean(payload.get('message')) or _clean(payload.get('notes')),
        'owner_id': default_owner_id,
    }
    normalized = {key: value for key, value in data.items() if value not in (None, '')}
    normalized['source_meta'] = extract_attribution(payload)

    logger.debug(f"Normalized contact data: {sorted(normalized)}")
    return normalized

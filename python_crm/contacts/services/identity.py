"""
Pure helpers for contact identity fields.
"""
from typing import Optional

# Contact.name column length
NAME_MAX_LENGTH = 255


def normalize_email(value: Optional[str]) -> Optional[str]:
    """
    Case-fold and trim an email address.

    Returns None for missing or blank values so that empty emails never
    take part in the uniqueness constraint.
    """
    if value is None:
        return None
    normalized = str(value).strip().lower()
    return normalized or None


def derive_display_name(
    first_name: Optional[str],
    last_name: Optional[str],
    explicit: Optional[str] = None,
) -> str:
    """
    Build the display name for a contact.

    An explicit name always wins; otherwise first and last name are joined,
    skipping whichever is empty. The result is clipped to NAME_MAX_LENGTH.
    """
    explicit = (explicit or '').strip()
    if explicit:
        return explicit[:NAME_MAX_LENGTH]
    parts = [(first_name or '').strip(), (last_name or '').strip()]
    return ' '.join(part for part in parts if part)[:NAME_MAX_LENGTH].rstrip()

"""
Domain errors raised by the contact lifecycle guard.
"""


class DuplicateEmail(Exception):
    """Raised when another active contact already holds the normalized email."""

    def __init__(self, email, existing_id=None):
        self.email = email
        self.existing_id = existing_id
        super().__init__(
            f"A contact with this email already exists: {email} (ID: {existing_id})"
        )


class RestoreConflict(Exception):
    """Raised when restoring a contact would duplicate an active contact's email."""

    def __init__(self, contact_id, conflicting_id=None):
        self.contact_id = contact_id
        self.conflicting_id = conflicting_id
        super().__init__(
            "Cannot restore contact; another active contact has the same email."
        )

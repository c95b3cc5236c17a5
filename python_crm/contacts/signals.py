"""
Domain events for contact changes.

Sent after the surrounding transaction commits. Receivers (notifications,
timeline) live outside this app; every signal carries ``contact``.
"""
from django.dispatch import Signal

contact_created = Signal()
contact_merged = Signal()
contact_deleted = Signal()
contact_restored = Signal()

"""
Write-only interface to the audit trail.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from audit.models import AuditEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who caused a mutation: the system itself, or a specific user."""

    kind: str
    user_id: Optional[int] = None

    @classmethod
    def system(cls) -> 'Actor':
        return cls(kind=AuditEntry.ActorType.SYSTEM)

    @classmethod
    def user(cls, user_id: int) -> 'Actor':
        return cls(kind=AuditEntry.ActorType.USER, user_id=user_id)

    @property
    def is_system(self) -> bool:
        return self.kind == AuditEntry.ActorType.SYSTEM


SYSTEM = Actor.system()


def record_for(
    subject_type: str,
    subject_id: Any,
    description: str,
    properties: Optional[dict] = None,
    actor: Actor = SYSTEM,
) -> AuditEntry:
    """
    Append one audit entry.

    Args:
        subject_type: Label of the mutated record type (e.g. 'contacts.contact')
        subject_id: Primary key of the mutated record
        description: Human readable summary of what happened
        properties: Opaque context (originating delivery, merged fields, ...)
        actor: Actor.system() for pipeline writes, Actor.user(id) for people

    Returns:
        The persisted AuditEntry
    """
    entry = AuditEntry.objects.create(
        subject_type=subject_type,
        subject_id=str(subject_id),
        description=description,
        actor_type=actor.kind,
        actor_id=actor.user_id,
        properties=properties or {},
    )
    logger.debug(f"Audit entry {entry.id}: {subject_type}:{subject_id} {description}")
    return entry


def record(subject, description: str, properties: Optional[dict] = None, actor: Actor = SYSTEM) -> AuditEntry:
    """Append an audit entry for a saved model instance."""
    return record_for(subject._meta.label_lower, subject.pk, description, properties, actor)

"""
Ingestion configuration, read once from Django settings.
"""
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Any, Optional

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver


def _as_int(value: Any, *, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid config: {name} must be an int")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValueError(f"Invalid config: {name} must be an int")


def _as_optional_int(value: Any, *, name: str) -> Optional[int]:
    if value is None or value == '':
        return None
    return _as_int(value, name=name)


@dataclass(frozen=True)
class IngestionConfig:
    shared_secret: Optional[str]
    token_header: str = 'X-Webhook-Token'
    default_owner_id: Optional[int] = None
    max_attempts: int = 5
    processing_timeout: timedelta = timedelta(minutes=15)
    retry_backoff_max: timedelta = timedelta(hours=1)
    event_type: str = 'lead.form.submitted'
    source_system: str = 'website_form'

    @classmethod
    def from_settings(cls, source=settings) -> 'IngestionConfig':
        return cls(
            shared_secret=getattr(source, 'WEBHOOK_SHARED_SECRET', None) or None,
            token_header=getattr(source, 'WEBHOOK_TOKEN_HEADER', 'X-Webhook-Token'),
            default_owner_id=_as_optional_int(
                getattr(source, 'WEBHOOK_DEFAULT_OWNER_ID', None),
                name='WEBHOOK_DEFAULT_OWNER_ID',
            ),
            max_attempts=_as_int(
                getattr(source, 'WEBHOOK_MAX_ATTEMPTS', 5),
                name='WEBHOOK_MAX_ATTEMPTS',
            ),
            processing_timeout=timedelta(seconds=_as_int(
                getattr(source, 'WEBHOOK_PROCESSING_TIMEOUT', 900),
                name='WEBHOOK_PROCESSING_TIMEOUT',
            )),
            retry_backoff_max=timedelta(seconds=_as_int(
                getattr(source, 'WEBHOOK_RETRY_BACKOFF_MAX', 3600),
                name='WEBHOOK_RETRY_BACKOFF_MAX',
            )),
        )


@lru_cache(maxsize=1)
def get_ingestion_config() -> IngestionConfig:
    """Process-wide configuration; built on first use and then reused."""
    return IngestionConfig.from_settings()


@receiver(setting_changed)
def _reset_ingestion_config(setting, **kwargs):
    if setting.startswith('WEBHOOK_'):
        get_ingestion_config.cache_clear()

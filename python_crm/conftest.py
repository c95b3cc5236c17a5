import os
import sys
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'crm_gateway.settings')

WEBHOOK_TOKEN = 'test-token-123'


@pytest.fixture(autouse=True)
def _fresh_ingestion_config():
    """Drop the memoised ingestion config so per-test settings take effect."""
    from webhooks.config import get_ingestion_config

    get_ingestion_config.cache_clear()
    yield
    get_ingestion_config.cache_clear()


@pytest.fixture
def webhook_secret(settings):
    """Configure the shared secret and return the token clients must send."""
    settings.WEBHOOK_SHARED_SECRET = WEBHOOK_TOKEN
    return WEBHOOK_TOKEN


@pytest.fixture
def auth_headers(webhook_secret):
    """Request kwargs carrying a valid shared-secret header."""
    return {'HTTP_X_WEBHOOK_TOKEN': webhook_secret}


@pytest.fixture
def ingestion_config(webhook_secret):
    from webhooks.config import get_ingestion_config

    return get_ingestion_config()


@pytest.fixture
def valid_lead_payload():
    """Return a valid lead form submission for testing."""
    return {
        'first_name': 'Ada',
        'last_name': 'Lovelace',
        'email': 'ada@example.com',
        'phone': '+1 (555) 010-2000',
        'company': 'Analytical Engines Ltd',
        'job_title': 'Head of Research',
        'message': 'Interested in a demo next week.',
        'utm_source': 'google',
        'utm_medium': 'cpc',
        'utm_campaign': 'spring-launch',
        'idempotency_key': 'form-submission-0001',
        'consent': True,
    }


@pytest.fixture
def phone_only_payload():
    """Return a submission that identifies the person by phone alone."""
    return {
        'phone': '555-0100',
        'message': 'Please call me back.',
    }

"""
Test Configuration

Architecture:
- Unit tests (test/**/unit/): in-memory fakes of every driven port, no DB / Kvrocks
- API tests (test/**/api/): FastAPI TestClient with dependency overrides onto the same fakes
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# Settings are read at import time
# =============================================================================
import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    """Set test environment variables before any module imports."""
    worker_id = os.environ.get('PYTEST_XDIST_WORKER', 'master')
    if worker_id == 'master':
        os.environ['POSTGRES_DB'] = 'registration_test_db'
        os.environ['KVROCKS_KEY_PREFIX'] = 'test_'
    else:
        os.environ['POSTGRES_DB'] = f'registration_test_db_{worker_id}'
        os.environ['KVROCKS_KEY_PREFIX'] = f'test_{worker_id}_'

    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)

    os.environ['ENABLE_TRACING'] = 'false'
    os.environ['PAYMENT_SIMULATE'] = 'true'
    os.environ['NOTIFY_SIMULATE'] = 'true'
    os.environ['STRIPE_WEBHOOK_SECRET'] = 'whsec_test_secret'


_early_setup_test_environment()

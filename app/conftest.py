"""
Project-wide pytest configuration.

Provides the auto-markers and the fixtures shared by every app: API
clients and a mocked Redis connection for the distributed lock.
"""

import os

import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.test_settings")


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full settlement workflows)
    - test_views.py, test_tasks.py, service tests, etc. → integration
    - test_models.py, test_fee_calculator.py, test_adapters.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_admin.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_settlement_service.py",
        "test_batch_coordinator.py",
        "test_queue_drainer.py",
        "test_account_status_service.py",
        "test_balance_guard.py",
        "test_account_resolver.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_services.py",
        "test_exceptions.py",
        "test_fee_calculator.py",
        "test_stripe_adapter.py",
        "test_state_transitions.py",
        "test_locks.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def staff_user(db, django_user_model):
    """A staff user allowed to call the payout API."""
    return django_user_model.objects.create_user(
        username="payout-admin",
        email="admin@example.com",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture
def staff_client(api_client, staff_user):
    """DRF test client authenticated as a staff user."""
    api_client.force_authenticate(user=staff_user)
    return api_client


# =============================================================================
# Redis Fixtures
# =============================================================================


@pytest.fixture
def mock_redis_lock(mocker):
    """Mock Redis for distributed locking."""
    mock_redis = mocker.MagicMock()
    mock_redis.set.return_value = True
    mock_redis.get.return_value = None
    mock_redis.delete.return_value = 1
    mock_redis.eval.return_value = 1

    mocker.patch(
        "payouts.locks.get_redis_connection",
        return_value=mock_redis,
    )
    return mock_redis

"""
Shared pytest configuration for the application packages.

Adjusts settings for speed and determinism and tags tests by file.
"""

import pytest


def pytest_configure():
    """Tune Django settings for the test run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_webhook_views.py, test_handlers.py, services → integration
    - test_models.py, test_signature.py, test_decoder.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_webhook_views.py",
        "test_handlers.py",
        "test_tasks.py",
        "test_admin.py",
        "test_checkout_service.py",
        "test_cancellation_service.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_signature.py",
        "test_decoder.py",
        "test_plans.py",
        "test_adapter.py",
        "test_services.py",
    ]

    for item in items:
        # Skip if test already has unit/integration marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern == filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern == filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)

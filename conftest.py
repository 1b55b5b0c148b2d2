"""
Root pytest configuration for the Django project.

This module prepares the test environment and configures Django before any
tests run. App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django

# Test environment: must be in place before settings are imported
TEST_ENVIRONMENT = {
    "DJANGO_SETTINGS_MODULE": "config.settings",
    "ENV_FILE": os.devnull,
    "SECRET_KEY": "test-secret-key-not-for-production",
    "DATABASE_URL": "sqlite://:memory:",
    "SECURE_SSL_REDIRECT": "False",
    "CELERY_TASK_ALWAYS_EAGER": "True",
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
    "RAZORPAY_KEY_ID": "rzp_test_key",
    "RAZORPAY_KEY_SECRET": "rzp_test_secret",
    "RAZORPAY_WEBHOOK_SECRET": "whsec_test_secret",
    "RAZORPAY_API_BASE": "https://api.razorpay.test/v1",
    "RAZORPAY_STARTER_MONTHLY_PLAN_ID": "plan_starter_monthly",
    "RAZORPAY_STARTER_YEARLY_PLAN_ID": "plan_starter_yearly",
    "RAZORPAY_PRO_MONTHLY_PLAN_ID": "plan_pro_monthly",
    "RAZORPAY_PRO_YEARLY_PLAN_ID": "plan_pro_yearly",
    "RAZORPAY_BUSINESS_MONTHLY_PLAN_ID": "plan_business_monthly",
    "RAZORPAY_BUSINESS_YEARLY_PLAN_ID": "plan_business_yearly",
}

for key, value in TEST_ENVIRONMENT.items():
    os.environ.setdefault(key, value)


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

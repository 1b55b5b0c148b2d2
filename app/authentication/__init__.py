"""
Authentication application.

Provides the email-based User model that owns billing subscriptions.

Usage:
    from authentication.models import User
"""

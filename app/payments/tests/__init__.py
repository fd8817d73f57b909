"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment and WebhookEvent model tests
- test_state_transitions.py: StateTransitionEngine tests
- test_retry.py: RetryCoordinator tests
- test_views.py: API endpoint tests
- test_integration.py: Full rental payment lifecycle

Service, adapter and webhook tests live beside their packages.

Usage:
    pytest payments/
    pytest payments/tests/test_integration.py
"""

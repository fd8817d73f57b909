"""
Tests for notifications app.

This package contains test modules for:
- test_models.py: Notification model tests
- test_services.py: NotificationEmitter tests

Usage:
    pytest notifications/tests/
"""

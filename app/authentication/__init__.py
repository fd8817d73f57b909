"""
Authentication application.

Key components:
    - User model: Custom email-based user authentication, carrying the
      owner's Stripe Connect account for payouts
    - UserManager: Email-based user creation

Usage:
    from authentication.models import User
"""

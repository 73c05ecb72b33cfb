"""
Authentication application.

Provides the email-based User model used as payer, payee and
administrator identity by the payment engine.

Usage:
    from authentication.models import User
"""

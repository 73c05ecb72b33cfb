"""
Payments app for course and order checkout.

This app handles:
- Payment initiation, verification, retry and refund
- Gateway callbacks and webhooks (eSewa, Khalti, Stripe)
- Fraud scoring of payment attempts
- Ledger rows, expenses and financial statements

Related apps:
    - learning: Courses and enrollments granted on completion
    - commerce: Orders paid through this app
    - coupons: Discounts applied at initiation
    - earnings: Instructor and affiliate commissions
    - audit: Audit trail of payment events

Usage:
    from payments.services import InitiatePaymentParams, PaymentOrchestrator

    result = PaymentOrchestrator.initiate(
        InitiatePaymentParams(payer=user, method="wallet", course=course)
    )
"""

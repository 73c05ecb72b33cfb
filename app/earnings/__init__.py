"""
Earnings application.

Payees (instructors and affiliates), their per-payment commission
records, and the commission engines that accrue, pay out and cancel
them while keeping ``pending + paid == total`` on every payee row.

Usage:
    from earnings.services import InstructorCommissionService
"""

"""
Learning application.

Holds the minimal course catalogue and enrollment records the payment
engine needs: a course's price and instructor, and an idempotent
``EnrollmentService.activate`` used after a course payment completes.

Usage:
    from learning.services import EnrollmentService
"""

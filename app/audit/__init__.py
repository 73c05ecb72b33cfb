"""
Audit application.

Append-only audit trail for payment security events and side-effect
failures. ``AuditService.record`` never raises, so a failing audit write
cannot abort the operation being audited.
"""

"""
Concurrency control utilities for payment operations.

Two complementary mechanisms:

1. **Distributed Locks** (DistributedLock, payment_lock)
   - Redis-based mutual exclusion across processes/servers
   - TTL prevents deadlocks from crashed processes
   - Serializes verify/refund/retry on one payment, including the
     gateway call that happens outside the database transaction

2. **Row Locks** (lock_payment)
   - select_for_update on the Payment row, with an optional version check
   - Must be called inside transaction.atomic()

Usage:

    from payments.locks import lock_payment, payment_lock

    with payment_lock(payment_id, "refund"):
        with transaction.atomic():
            payment = lock_payment(payment_id)
            payment.refund(30000)
            payment.save()
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django.conf import settings

from django_redis import get_redis_connection

from payments.exceptions import (
    LockAcquisitionError,
    PaymentNotFoundError,
    StaleRecordError,
)

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

    from payments.models import Payment


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    The lock value is a random token so only the holder can release or
    extend it; both use Lua scripts to check ownership atomically.

    Example:
        with DistributedLock("payment:verify:123", ttl=60, timeout=10):
            PaymentOrchestrator.verify(params)

        lock = DistributedLock("expire:pending", blocking=False)
        try:
            with lock:
                expire()
        except LockAcquisitionError:
            # Another worker is already on it
            return

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds before Redis drops the lock on its own
        blocking: Wait for the lock instead of failing immediately
        timeout: Maximum wait in seconds when blocking
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    POLL_INTERVAL_SECONDS = 0.05

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def acquire(self) -> bool:
        """
        Acquire the lock or raise.

        Raises:
            LockAcquisitionError: Lock held elsewhere (non-blocking) or not
                freed within ``timeout`` seconds (blocking)
        """
        token = uuid_module.uuid4().hex
        deadline = time.monotonic() + (self.timeout if self.blocking else 0)

        while True:
            if self.redis.set(self.key, token, nx=True, ex=self.ttl):
                self._token = token
                return True
            if time.monotonic() >= deadline:
                break
            time.sleep(self.POLL_INTERVAL_SECONDS)

        if self.blocking:
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )
        raise LockAcquisitionError(
            f"Lock '{self.key}' is already held",
            details={"key": self.key},
        )

    def release(self) -> bool:
        """Release the lock if we still own it. Safe to call twice."""
        if self._token is None:
            return False
        released = self.redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(released)

    def extend(self, ttl: int | None = None) -> bool:
        """Reset the TTL (not add to it) if we still own the lock."""
        if self._token is None:
            return False
        extended = self.redis.eval(
            self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl
        )
        return bool(extended)

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb: Any) -> bool:
        self.release()
        return False


def payment_lock(payment_id: Any, operation: str) -> DistributedLock:
    """
    Lock serializing one kind of operation on one payment.

    Verify, refund and retry each take ``payment:{operation}:{id}``; TTL
    and wait come from PAYMENT_LOCK_TTL_SECONDS / PAYMENT_LOCK_TIMEOUT_SECONDS.
    """
    return DistributedLock(
        f"payment:{operation}:{payment_id}",
        ttl=settings.PAYMENT_LOCK_TTL_SECONDS,
        timeout=settings.PAYMENT_LOCK_TIMEOUT_SECONDS,
    )


# =============================================================================
# Row Locks
# =============================================================================


def lock_payment(payment_id: Any, expected_version: int | None = None) -> Payment:
    """
    Lock a Payment row for update.

    Must be called inside transaction.atomic(); the row stays locked until
    the transaction ends.

    Raises:
        PaymentNotFoundError: No such payment
        StaleRecordError: ``expected_version`` given and the row moved on
    """
    from payments.models import Payment

    try:
        payment = Payment.objects.select_for_update().get(pk=payment_id)
    except Payment.DoesNotExist:
        raise PaymentNotFoundError(
            f"Payment {payment_id} not found",
            details={"payment_id": str(payment_id)},
        )

    if expected_version is not None and payment.version != expected_version:
        raise StaleRecordError(
            f"Payment {payment_id} has been modified "
            f"(expected version {expected_version}, current {payment.version})",
            details={
                "payment_id": str(payment_id),
                "expected_version": expected_version,
                "current_version": payment.version,
            },
        )
    return payment


__all__ = [
    "DistributedLock",
    "lock_payment",
    "payment_lock",
]

"""
Concurrency control for payout settlement.

Two mechanisms, with different scopes:

1. **Row-level compare-and-set** (lock_statement + ConcurrentTransitionMixin)
   - The per-statement guarantee: only one writer can move a statement
     out of a given payout status, across processes and replicas
   - Use for: every payout status transition

2. **Distributed Lock** (DistributedLock)
   - Redis-based mutual exclusion for a whole drain run, so a
     webhook-triggered drain and a manual drain don't sweep the queue
     at the same time
   - Never the only guard for a statement

Usage:

    from payouts.locks import DistributedLock, lock_statement

    with transaction.atomic():
        statement = lock_statement(statement_id)
        statement.start_settlement()
        statement.save()  # raises ConcurrentTransition if the row moved

    with DistributedLock("payouts:drain", ttl=300, blocking=False):
        drain_queue()
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payouts.exceptions import LockAcquisitionError, PayoutNotFoundError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

    from statements.models import Statement


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - TTL releases the lock if the holder crashes
        - Token-based ownership so only the holder can release
        - Blocking and non-blocking acquisition modes
        - extend() for runs longer than the initial TTL

    Example:
        lock = DistributedLock("payouts:drain", ttl=300, blocking=False)
        try:
            with lock:
                for statement in queued:
                    settle(statement)
                    lock.extend()
        except LockAcquisitionError:
            # Another drain is running
            ...

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Lock TTL in seconds
        blocking: If True, acquire() waits until the lock is available
        timeout: Maximum wait time in seconds (blocking mode only)
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

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (non-blocking)
                or the wait timed out (blocking)
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.time() + self.timeout
            while time.time() < end_time:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it. Safe to call more than once.

        Returns:
            True if the lock was released, False if we didn't hold it
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, ttl: int | None = None) -> bool:
        """
        Reset the lock TTL if we still hold it.

        Returns:
            True if the TTL was reset, False if the lock was lost
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl)
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


# =============================================================================
# Row-level Locking
# =============================================================================


def lock_statement(statement_id: Any) -> Statement:
    """
    Load a statement with a row lock for a status transition.

    On PostgreSQL the row stays locked until the surrounding transaction
    ends. Backends without SELECT ... FOR UPDATE still get the conditional
    update from ConcurrentTransitionMixin when the statement is saved.

    Raises:
        PayoutNotFoundError: If the statement does not exist

    Note:
        Must be called inside transaction.atomic().
    """
    from statements.models import Statement

    statement = Statement.objects.select_for_update().filter(pk=statement_id).first()
    if statement is None:
        raise PayoutNotFoundError(
            f"Statement {statement_id} not found",
            error_code="STATEMENT_NOT_FOUND",
            details={"statement_id": statement_id},
        )
    return statement


__all__ = [
    "DistributedLock",
    "lock_statement",
]

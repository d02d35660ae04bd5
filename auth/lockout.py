"""
auth/lockout.py -- Per-identity login attempt throttling.

LockoutTracker owns an in-memory map of LoginAttemptRecord keyed by
normalized email. It is process-local state; api/main.py creates one instance
in the lifespan and injects it through app.state so it can be swapped for a
shared implementation without touching call sites.

State machine per key:
  absent --failure--> counting(n) --failure (n+1 == threshold)--> locked
  locked --check after lockout_until--> absent (record deleted, not reset)
  any    --success--> absent

Concurrency: login handlers run in FastAPI's threadpool, so every
read-modify-write happens under one threading.Lock. Two concurrent failures
at attempt_count=4 both count.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable

from auth.models import Admission, Allowed, Locked, LoginAttemptRecord, normalize_email

logger = logging.getLogger("portal.auth")

DEFAULT_THRESHOLD = 5
DEFAULT_LOCKOUT_SECONDS = 200


class LockoutTracker:
    """Counts failed logins per identity and refuses admission while locked.

    Usage:
        tracker = LockoutTracker()
        if isinstance(tracker.check_admission(email), Locked): ...
        tracker.record_failure(email)
        tracker.record_success(email)
    """

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        lockout_seconds: int = DEFAULT_LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.threshold = threshold
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._records: dict[str, LoginAttemptRecord] = {}
        self._lock = threading.Lock()

    def check_admission(self, identity_key: str) -> Admission:
        """Return Locked while a lockout is active, Allowed otherwise.

        A lockout that has already run out is deleted here (lazy expiry), so a
        stale record never blocks a legitimate attempt and the next failure
        starts a fresh window at 1.

        Locked.attempts reports the raw failure count, which can be above the
        threshold when in-flight failures land after the lock was set.
        """
        key = normalize_email(identity_key)
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None or record.lockout_until is None:
                return Allowed()
            if record.lockout_until > now:
                return Locked(
                    retry_after_seconds=math.ceil(record.lockout_until - now),
                    attempts=record.attempt_count,
                )
            del self._records[key]
        return Allowed()

    def record_failure(self, identity_key: str) -> LoginAttemptRecord:
        """Count one failed attempt; start the lockout when the threshold is reached.

        Returns a snapshot of the record after the update. An active lockout is
        never extended by further failures.
        """
        key = normalize_email(identity_key)
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = LoginAttemptRecord(key=key)
                self._records[key] = record
            record.attempt_count += 1
            newly_locked = record.attempt_count >= self.threshold and record.lockout_until is None
            if newly_locked:
                record.lockout_until = now + self.lockout_seconds
            snapshot = LoginAttemptRecord(key, record.attempt_count, record.lockout_until)
        if newly_locked:
            logger.warning(
                "Login locked out for %ds after %d failed attempts",
                self.lockout_seconds,
                snapshot.attempt_count,
            )
        return snapshot

    def record_success(self, identity_key: str) -> None:
        """Forget all failure history for the identity."""
        key = normalize_email(identity_key)
        with self._lock:
            self._records.pop(key, None)

    def attempts(self, identity_key: str) -> int:
        """Current failure count for the identity (0 when no record exists)."""
        key = normalize_email(identity_key)
        with self._lock:
            record = self._records.get(key)
            return record.attempt_count if record else 0

    def purge_expired(self) -> int:
        """Delete records whose lockout has run out. Returns number removed."""
        now = self._clock()
        with self._lock:
            stale = [
                key
                for key, record in self._records.items()
                if record.lockout_until is not None and record.lockout_until <= now
            ]
            for key in stale:
                del self._records[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

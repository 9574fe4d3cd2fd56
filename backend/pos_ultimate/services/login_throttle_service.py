"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the identifier is temporarily locked.

State per identifier: {attempt_count, locked_until}. Identifiers are
stripped and case-folded, so "Admin" and "admin" share one bucket.

- Reaching max_attempts failures sets locked_until = now + lockout and
  resets attempt_count to 0
- A successful login resets attempt_count and clears locked_until
- Only identifiers with recorded failures or an active lockout are kept
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..time_utils import minutes_until

logger = logging.getLogger(__name__)


# Configuration defaults
MAX_FAILED_ATTEMPTS = 3
LOCKOUT_DURATION = timedelta(minutes=5)


def normalize_identifier(identifier: str) -> str:
    return (identifier or "").strip().casefold()


@dataclass
class ThrottleState:
    attempt_count: int = 0
    locked_until: datetime | None = None


class LoginThrottle:
    def __init__(self, max_attempts: int = MAX_FAILED_ATTEMPTS, lockout: timedelta = LOCKOUT_DURATION):
        self.max_attempts = max_attempts
        self.lockout = lockout
        self._states: dict[str, ThrottleState] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Number of identifiers currently tracked."""
        with self._lock:
            return len(self._states)

    def _live_state(self, key: str, now: datetime) -> ThrottleState | None:
        """
        State for a normalized identifier, or None when there is nothing to track.

        Expired lockouts are cleared on the way; entries left with no attempts
        and no lockout are dropped. Call with the lock held.
        """
        state = self._states.get(key)
        if state is None:
            return None
        if state.locked_until is not None and now >= state.locked_until:
            state.locked_until = None
        if state.locked_until is None and state.attempt_count == 0:
            del self._states[key]
            return None
        return state

    def locked_minutes_remaining(self, identifier: str, now: datetime) -> int | None:
        """
        Minutes left on an active lockout, or None when not locked.
        """
        with self._lock:
            state = self._live_state(normalize_identifier(identifier), now)
            if state is None or state.locked_until is None:
                return None
            return minutes_until(state.locked_until, now)

    def record_failure(self, identifier: str, now: datetime) -> tuple[int, bool]:
        """
        Record a failed attempt.

        Returns (attempt_count, locked). When the failure reaches the limit the
        identifier is locked and the reported count is max_attempts.
        """
        key = normalize_identifier(identifier)
        with self._lock:
            state = self._live_state(key, now) or self._states.setdefault(key, ThrottleState())
            state.attempt_count += 1
            if state.attempt_count >= self.max_attempts:
                state.locked_until = now + self.lockout
                state.attempt_count = 0
                logger.warning("Identifier %r locked out until %s", key, state.locked_until)
                return self.max_attempts, True
            return state.attempt_count, False

    def record_success(self, identifier: str) -> None:
        with self._lock:
            self._states.pop(normalize_identifier(identifier), None)

    def status(self, identifier: str, now: datetime) -> dict:
        """
        Get detailed lockout status for an identifier.
        """
        with self._lock:
            state = self._live_state(normalize_identifier(identifier), now)
            locked = state is not None and state.locked_until is not None
            return {
                "locked": locked,
                "failed_attempts": state.attempt_count if state else 0,
                "max_attempts": self.max_attempts,
                "minutes_until_unlock": minutes_until(state.locked_until, now) if locked else None,
                "lockout_duration_minutes": int(self.lockout.total_seconds() / 60),
            }

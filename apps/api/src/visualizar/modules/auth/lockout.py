"""
OTP Lockout Policy

Per-account attempt limiting for code verification.

An account is OPEN until its third consecutive failed verification, which
LOCKS it for five minutes. The lock is never swept in the background: the
next request_code/verify_code after the deadline finds it expired and
resets the counter. Any successful verification resets it immediately.
"""

from datetime import UTC, datetime, timedelta

MAX_OTP_ATTEMPTS = 3
LOCKOUT_DURATION = timedelta(minutes=5)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def is_locked(locked_until: datetime | None, now: datetime) -> bool:
    """True while a lock deadline is set and still in the future."""
    return locked_until is not None and _as_utc(locked_until) > now


def lock_expired(locked_until: datetime | None, now: datetime) -> bool:
    """True when a lock deadline is set but has already passed."""
    return locked_until is not None and _as_utc(locked_until) <= now


def remaining_attempts(failed_attempts: int) -> int:
    return max(0, MAX_OTP_ATTEMPTS - failed_attempts)


def should_lock(failed_attempts: int) -> bool:
    return failed_attempts >= MAX_OTP_ATTEMPTS


def lockout_deadline(now: datetime) -> datetime:
    return now + LOCKOUT_DURATION

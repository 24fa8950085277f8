"""
Admission Control

Pre-request check that can deny service based on rate or policy.

TokenBucketAdmission keeps one bucket per subject. Each bucket holds up to
`capacity` tokens and gains `refill_rate` tokens every `interval_seconds`.
A request costs `requested` tokens; when the bucket cannot pay, the request
is denied with the remaining token count and the seconds until the next
refill.

Buckets back at capacity are dropped at most once per interval; the next
request from that subject starts a fresh, full bucket.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional

from pydantic import BaseModel

from onestop.config import get_settings


class DenialReason:
    RATE_LIMIT = "rate_limit"
    BLOCKED = "blocked"


class AdmissionDecision(BaseModel):
    """Outcome of an admission check."""

    allowed: bool
    reason: Optional[str] = None
    remaining: Optional[int] = None
    reset_seconds: Optional[float] = None

    @property
    def is_denied(self) -> bool:
        return not self.allowed

    @property
    def is_rate_limit(self) -> bool:
        return self.reason == DenialReason.RATE_LIMIT


class AdmissionController(ABC):
    """Interface to the admission-control provider."""

    @abstractmethod
    def protect(self, subject: str, requested: int = 1) -> AdmissionDecision:
        """Charge `requested` units to the subject and decide."""
        pass


class AllowAllAdmission(AdmissionController):
    """Admits everything. For local use and tests."""

    def protect(self, subject: str, requested: int = 1) -> AdmissionDecision:
        return AdmissionDecision(allowed=True)


class _Bucket:
    __slots__ = ("tokens", "last_refill")

    def __init__(self, tokens: int, last_refill: float):
        self.tokens = tokens
        self.last_refill = last_refill


class TokenBucketAdmission(AdmissionController):
    """
    In-process token bucket with a block list.

    Thread-safe: concurrent requests for the same subject never spend
    the same token twice.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        refill_rate: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        blocked_subjects: Optional[Iterable[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings().admission
        self.capacity = capacity if capacity is not None else settings.capacity
        self.refill_rate = refill_rate if refill_rate is not None else settings.refill_rate
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.interval_seconds
        )
        self.blocked_subjects = set(
            blocked_subjects if blocked_subjects is not None else settings.blocked_subjects_list
        )
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def _refill(self, bucket: _Bucket, now: float) -> None:
        intervals = int((now - bucket.last_refill) // self.interval_seconds)
        if intervals > 0:
            bucket.tokens = min(self.capacity, bucket.tokens + intervals * self.refill_rate)
            bucket.last_refill += intervals * self.interval_seconds

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.interval_seconds:
            return
        self._last_prune = now
        for subject, bucket in list(self._buckets.items()):
            self._refill(bucket, now)
            if bucket.tokens >= self.capacity:
                del self._buckets[subject]

    def protect(self, subject: str, requested: int = 1) -> AdmissionDecision:
        if subject in self.blocked_subjects:
            return AdmissionDecision(allowed=False, reason=DenialReason.BLOCKED)

        with self._lock:
            now = self._clock()
            self._prune(now)
            bucket = self._buckets.get(subject)
            if bucket is None:
                bucket = _Bucket(self.capacity, now)
                self._buckets[subject] = bucket
            self._refill(bucket, now)

            reset_seconds = round(self.interval_seconds - (now - bucket.last_refill), 3)
            if bucket.tokens < requested:
                return AdmissionDecision(
                    allowed=False,
                    reason=DenialReason.RATE_LIMIT,
                    remaining=bucket.tokens,
                    reset_seconds=reset_seconds,
                )

            bucket.tokens -= requested
            return AdmissionDecision(
                allowed=True,
                remaining=bucket.tokens,
                reset_seconds=reset_seconds,
            )

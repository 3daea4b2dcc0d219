"""
Decay - Read-time mastery decay and tier classification.

Mastery reported by a single observation fades without reinforcement:

    effective = clamp(0, 100, raw_score - decay_rate_per_day * days_elapsed)

The tier is always derived from the effective score, never stored.
"""

from datetime import datetime
from enum import Enum

from .records import MasteryRecord, as_utc

SECONDS_PER_DAY = 86400


class MasteryStatus(str, Enum):
    CRITICAL = "critical"
    REVIEW = "review"
    MASTERED = "mastered"


def days_elapsed(since: datetime, now: datetime) -> float:
    """Fractional days from `since` to `now`; 0 if `now` is earlier."""
    seconds = (as_utc(now) - as_utc(since)).total_seconds()
    return max(0.0, seconds / SECONDS_PER_DAY)


def effective_score(record: MasteryRecord, now: datetime) -> float:
    """
    Decay-adjusted mastery at `now`.

    Never exceeds the raw score and never increases as `now` advances.
    """
    decayed = record.raw_score - record.decay_rate_per_day * days_elapsed(record.last_observed_at, now)
    return max(0.0, min(100.0, decayed))


class StatusClassifier:
    """Fixed thresholds; a boundary value belongs to the higher tier."""

    REVIEW_THRESHOLD = 60
    MASTERED_THRESHOLD = 85

    @classmethod
    def classify(cls, score: float) -> MasteryStatus:
        if score >= cls.MASTERED_THRESHOLD:
            return MasteryStatus.MASTERED
        if score >= cls.REVIEW_THRESHOLD:
            return MasteryStatus.REVIEW
        return MasteryStatus.CRITICAL


def status(score: float) -> MasteryStatus:
    return StatusClassifier.classify(score)

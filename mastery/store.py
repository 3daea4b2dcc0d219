"""
Mastery Store - Observed mastery per subtopic, updated only by merging events.

Conflict resolution is latest-observation-wins on `observed_at`, so the final
state depends only on the newest observation per key and not on the order in
which asynchronous analysis requests complete.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .records import (
    AssessmentEvent, MasteryRecord, SubTopicKey, as_utc, normalize_key,
)

logger = logging.getLogger(__name__)


class MergeOutcome(str, Enum):
    ACCEPTED = "accepted"
    IGNORED_STALE = "ignored-stale"
    REJECTED_INVALID = "rejected-invalid"


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging one event."""
    event: AssessmentEvent
    outcome: MergeOutcome
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.outcome is MergeOutcome.ACCEPTED


class MasteryStore:
    """
    Keyed table of MasteryRecords, at most one per SubTopicKey.

    Records are immutable; an update swaps the whole record in the table, so a
    reader never sees a half-applied change.
    """

    def __init__(self):
        self._records: Dict[SubTopicKey, MasteryRecord] = {}

    def get(self, key: SubTopicKey) -> Optional[MasteryRecord]:
        """Record for a key; plain-string labels are accepted."""
        try:
            return self._records.get(normalize_key(key))
        except (TypeError, ValueError):
            return None

    def __contains__(self, key) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MasteryRecord]:
        return iter(list(self._records.values()))

    def records(self) -> List[MasteryRecord]:
        return list(self._records.values())

    def replace(self, record: MasteryRecord):
        """Swap in the record for its key. Only the merge engine writes here."""
        self._records[record.key] = record

    # ==================== Serialization ====================

    def to_rows(self) -> List[dict]:
        """Flat snapshot of the table, one row per key."""
        return [
            {
                "grade": r.key.grade.value,
                "subject": r.key.subject.value,
                "topic": r.key.topic,
                "subTopic": r.key.sub_topic,
                "rawScore": r.raw_score,
                "lastObservedAt": r.last_observed_at.isoformat(),
                "decayRatePerDay": r.decay_rate_per_day,
            }
            for r in self._records.values()
        ]

    @classmethod
    def from_rows(cls, rows: Sequence[dict]) -> "MasteryStore":
        """Rebuild a store from `to_rows` output."""
        store = cls()
        for row in rows:
            key = normalize_key((row["grade"], row["subject"], row["topic"], row["subTopic"]))
            store.replace(MasteryRecord(
                key=key,
                raw_score=int(row["rawScore"]),
                last_observed_at=as_utc(datetime.fromisoformat(row["lastObservedAt"])),
                decay_rate_per_day=float(row["decayRatePerDay"]),
            ))
        return store


class MergeEngine:
    """
    Applies AssessmentEvents to a MasteryStore.

    Per event:
        invalid score/key/timestamp        -> rejected-invalid (store untouched)
        no record yet                      -> insert, accepted
        observed_at >= last_observed_at    -> overwrite, accepted
        observed_at <  last_observed_at    -> ignored-stale
    """

    MIN_SCORE = 0
    MAX_SCORE = 100

    def __init__(self, store: MasteryStore,
                 decay_rate_for: Callable[[SubTopicKey], float]):
        self.store = store
        self.decay_rate_for = decay_rate_for
        self._merging = False

    def merge(self, events: Sequence[AssessmentEvent]) -> List[MergeResult]:
        """
        Merge a batch of events, returning one result per event in order.

        A bad event never aborts the rest of the batch. Merges are not
        re-entrant.
        """
        if self._merging:
            raise RuntimeError("merge() called while another merge is in progress")

        self._merging = True
        try:
            results = [self._merge_one(event) for event in events]
        finally:
            self._merging = False

        accepted = sum(1 for r in results if r.accepted)
        logger.info("Merged batch of %d events: %d accepted", len(results), accepted)
        return results

    def _merge_one(self, event: AssessmentEvent) -> MergeResult:
        reason = self._validate(event)
        if reason is not None:
            logger.warning("Rejected assessment %r: %s", event, reason)
            return MergeResult(event, MergeOutcome.REJECTED_INVALID, reason)

        key = normalize_key(event.key)
        observed_at = as_utc(event.observed_at)
        existing = self.store.get(key)

        if existing is None:
            self.store.replace(MasteryRecord(
                key=key,
                raw_score=event.score,
                last_observed_at=observed_at,
                decay_rate_per_day=self.decay_rate_for(key),
            ))
            logger.debug("Created record for %s at %d", key, event.score)
            return MergeResult(event, MergeOutcome.ACCEPTED)

        if observed_at < existing.last_observed_at:
            logger.debug("Stale observation for %s ignored", key)
            return MergeResult(event, MergeOutcome.IGNORED_STALE)

        self.store.replace(MasteryRecord(
            key=key,
            raw_score=event.score,
            last_observed_at=observed_at,
            decay_rate_per_day=existing.decay_rate_per_day,
        ))
        logger.debug("Updated %s: %d -> %d", key, existing.raw_score, event.score)
        return MergeResult(event, MergeOutcome.ACCEPTED)

    def _validate(self, event: AssessmentEvent) -> Optional[str]:
        """Return a rejection reason, or None if the event is well formed."""
        score = event.score
        if isinstance(score, bool) or not isinstance(score, int):
            return f"score must be an integer, got {score!r}"
        if not self.MIN_SCORE <= score <= self.MAX_SCORE:
            return f"score {score} outside [{self.MIN_SCORE}, {self.MAX_SCORE}]"

        if not isinstance(event.observed_at, datetime):
            return f"observed_at must be a datetime, got {event.observed_at!r}"

        try:
            normalize_key(event.key)
        except (TypeError, ValueError) as e:
            return f"invalid key {event.key!r}: {e}"

        return None

"""
Query Engine - Filtered, searchable heatmap views over the mastery store.

Filters are applied in order:
    1. catalog entries for the grade
    2. subject filter (unless "All")
    3. case-insensitive substring search over topic and subtopic

Decay and classification are computed per call; the store is never modified.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from .catalog import KnowledgeCatalog
from .decay import MasteryStatus, effective_score, status
from .records import MasteryRecord, Subject, SubTopicKey, parse_subject, utc_now
from .store import MasteryStore

ALL_SUBJECTS = "All"


@dataclass(frozen=True)
class ViewRecord:
    """A MasteryRecord annotated with its score and tier at query time."""
    record: MasteryRecord
    effective_score: float
    status: MasteryStatus

    @property
    def key(self) -> SubTopicKey:
        return self.record.key

    @property
    def topic(self) -> str:
        return self.record.key.topic

    @property
    def sub_topic(self) -> str:
        return self.record.key.sub_topic

    @property
    def raw_score(self) -> int:
        return self.record.raw_score

    def to_dict(self) -> dict:
        """Plain representation for a presentation layer."""
        return {
            "subject": self.key.subject.value,
            "topic": self.topic,
            "subTopic": self.sub_topic,
            "rawScore": self.raw_score,
            "effectiveScore": round(self.effective_score, 2),
            "status": self.status.value,
            "lastObservedAt": self.record.last_observed_at.isoformat(),
        }


def view_of(record: MasteryRecord, now: datetime) -> ViewRecord:
    score = effective_score(record, now)
    return ViewRecord(record=record, effective_score=score, status=status(score))


class QueryEngine:
    """Pure reads composed from the catalog and the store."""

    def __init__(self, catalog: KnowledgeCatalog, store: MasteryStore):
        self.catalog = catalog
        self.store = store

    def query(self, grade, subject_filter: Union[Subject, str] = ALL_SUBJECTS,
              search_text: str = "",
              now: Optional[datetime] = None) -> Dict[Subject, List[ViewRecord]]:
        """
        Heatmap view for one grade.

        Args:
            grade: Grade enum or label; unknown grades yield an empty mapping
            subject_filter: "All" or a Subject; other labels raise ValueError
            search_text: Substring matched against topic and subtopic
            now: Evaluation time for decay (defaults to the current time)

        Returns:
            Subject -> ViewRecords in catalog order. Subjects without any
            matching assessed subtopic are omitted.
        """
        now = now or utc_now()

        if subject_filter == ALL_SUBJECTS:
            subjects = self.catalog.ordered_subjects(grade)
        else:
            subject = parse_subject(subject_filter)
            subjects = [s for s in self.catalog.ordered_subjects(grade) if s == subject]

        needle = (search_text or "").strip().lower()

        view: Dict[Subject, List[ViewRecord]] = {}
        for subject in subjects:
            rows = []
            for entry in self.catalog.entries_for(grade, subject):
                if needle and needle not in entry.topic.lower() \
                        and needle not in entry.sub_topic.lower():
                    continue
                record = self.store.get(entry.key)
                if record is not None:
                    rows.append(view_of(record, now))
            if rows:
                view[subject] = rows

        return view


def group_by_topic(records: Iterable[ViewRecord]) -> Dict[str, List[ViewRecord]]:
    """Group rows by topic, keeping topics in first-seen order."""
    grouped: Dict[str, List[ViewRecord]] = {}
    for row in records:
        grouped.setdefault(row.topic, []).append(row)
    return grouped

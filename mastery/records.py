"""
Records - Shared value types for the mastery engine.

Types:
    - Grade / Subject: closed curriculum enumerations
    - SubTopicKey: (grade, subject, topic, sub_topic) identity
    - MasteryRecord: latest accepted observation for one key
    - AssessmentEvent: scored observation delivered by an analysis service
    - CatalogEntry: one curriculum leaf plus its seed data
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional, Union


class Grade(str, Enum):
    GRADE_1 = "Grade 1"
    GRADE_2 = "Grade 2"
    GRADE_3 = "Grade 3"
    GRADE_4 = "Grade 4"
    GRADE_5 = "Grade 5"
    GRADE_6 = "Grade 6"
    GRADE_7 = "Grade 7"
    GRADE_8 = "Grade 8"
    GRADE_9 = "Grade 9"
    GRADE_10 = "Grade 10"
    GRADE_11 = "Grade 11"
    GRADE_12 = "Grade 12"


class Subject(str, Enum):
    MATH = "Math"
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    ENGLISH = "English"
    CHINESE = "Chinese"
    BIOLOGY = "Biology"
    HISTORY = "History"
    GEOGRAPHY = "Geography"
    POLITICS = "Politics"
    SCIENCE = "Science"


class SubTopicKey(NamedTuple):
    """Identity of the smallest addressable curriculum unit."""
    grade: Grade
    subject: Subject
    topic: str
    sub_topic: str


@dataclass(frozen=True)
class MasteryRecord:
    """Latest accepted observation for a subtopic."""
    key: SubTopicKey
    raw_score: int  # [0, 100]
    last_observed_at: datetime
    decay_rate_per_day: float  # Points lost per day without reinforcement


@dataclass(frozen=True)
class AssessmentEvent:
    """
    A timestamped score for one subtopic.

    Produced outside the engine, so nothing here is validated; the merge
    engine rejects malformed events with an explicit result instead.
    """
    key: SubTopicKey
    score: int
    observed_at: datetime


@dataclass(frozen=True)
class CatalogEntry:
    """One curriculum leaf. Optional fields carry catalog defaults and seed data."""
    grade: Grade
    subject: Subject
    topic: str
    sub_topic: str
    decay_rate_per_day: Optional[float] = None
    baseline_score: Optional[int] = None
    baseline_days_ago: float = 2.0

    @property
    def key(self) -> SubTopicKey:
        return SubTopicKey(self.grade, self.subject, self.topic, self.sub_topic)


# ==================== Boundary Parsing ====================

def parse_grade(value: Union[Grade, str]) -> Grade:
    """Coerce a grade label to the enum. Raises ValueError for unknown labels."""
    if isinstance(value, Grade):
        return value
    return Grade(str(value).strip())


def parse_subject(value: Union[Subject, str]) -> Subject:
    """Coerce a subject label to the enum. Raises ValueError for unknown labels."""
    if isinstance(value, Subject):
        return value
    return Subject(str(value).strip())


def normalize_key(key) -> SubTopicKey:
    """
    Build a canonical SubTopicKey from any 4-item sequence.

    Enum members hash by name, so raw strings must be converted before the
    key is used for lookups.
    """
    grade, subject, topic, sub_topic = key
    if not isinstance(topic, str) or not topic.strip():
        raise ValueError(f"topic must be a non-empty string, got {topic!r}")
    if not isinstance(sub_topic, str) or not sub_topic.strip():
        raise ValueError(f"sub_topic must be a non-empty string, got {sub_topic!r}")
    return SubTopicKey(parse_grade(grade), parse_subject(subject),
                       topic.strip(), sub_topic.strip())


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so all comparisons are well defined."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

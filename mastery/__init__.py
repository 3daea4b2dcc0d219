"""
Mastery module - Knowledge mastery tracking and querying.

Components:
    - records: grade/subject enumerations, keys, records and events
    - catalog: read-only curriculum registry (grade → subject → topic → subtopic)
    - store: mastery table plus latest-observation-wins merge engine
    - decay: read-time decay and critical/review/mastered classification
    - query: filtered, searchable heatmap views
"""

from .records import (
    AssessmentEvent, CatalogEntry, Grade, MasteryRecord, Subject, SubTopicKey,
)
from .catalog import CatalogError, KnowledgeCatalog, load_catalog_dir
from .store import MasteryStore, MergeEngine, MergeOutcome, MergeResult
from .decay import MasteryStatus, StatusClassifier, effective_score, status
from .query import ALL_SUBJECTS, QueryEngine, ViewRecord, group_by_topic

__all__ = [
    "AssessmentEvent",
    "CatalogEntry",
    "Grade",
    "MasteryRecord",
    "Subject",
    "SubTopicKey",
    "CatalogError",
    "KnowledgeCatalog",
    "load_catalog_dir",
    "MasteryStore",
    "MergeEngine",
    "MergeOutcome",
    "MergeResult",
    "MasteryStatus",
    "StatusClassifier",
    "effective_score",
    "status",
    "ALL_SUBJECTS",
    "QueryEngine",
    "ViewRecord",
    "group_by_topic",
]

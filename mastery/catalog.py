"""
Knowledge Catalog - Read-only curriculum registry.

Features:
    - Hierarchical structure (grade → subject → topic → subtopic) as a DAG
    - Curriculum order preserved for stable presentation
    - Per-entry decay-rate defaults and baseline (seed) observations
    - Loaded once; reloading with different data is refused
"""

import json
import math
import logging
import networkx as nx
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import config
from .records import (
    AssessmentEvent, CatalogEntry, Grade, Subject, SubTopicKey,
    normalize_key, parse_grade, parse_subject, utc_now,
)

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised for malformed catalog data or an attempt to replace a loaded catalog."""


class KnowledgeCatalog:
    """
    Directed tree of curriculum nodes.

    Structure:
        Grade (e.g., "Grade 9")
        └── Subject (e.g., "Math")
            └── Topic (e.g., "Algebra")
                └── SubTopic (e.g., "Quadratic Equations")

    Node ids are tuples of increasing length; leaves are SubTopicKeys.
    """

    def __init__(self, default_decay_rate: Optional[float] = None):
        self.graph = nx.DiGraph()
        self.entries: Dict[SubTopicKey, CatalogEntry] = {}
        rate = config.DEFAULT_DECAY_RATE if default_decay_rate is None else default_decay_rate
        if not _is_valid_rate(rate):
            raise CatalogError(f"Default decay rate must be a finite number >= 0, got {rate!r}")
        self.default_decay_rate = float(rate)
        self._loaded: Optional[Tuple[CatalogEntry, ...]] = None

    @classmethod
    def from_directory(cls, data_dir: Union[str, Path, None] = None,
                       default_decay_rate: Optional[float] = None) -> "KnowledgeCatalog":
        """Build a catalog from every JSON file in a data directory."""
        catalog = cls(default_decay_rate)
        catalog.load(load_catalog_dir(data_dir or config.CATALOG_DIR))
        return catalog

    # ==================== Loading ====================

    @property
    def is_loaded(self) -> bool:
        return self._loaded is not None

    def load(self, entries: Iterable[Union[CatalogEntry, dict]]):
        """
        Populate the catalog. May only happen once.

        Calling again with identical data is a no-op; different data raises
        CatalogError. Duplicate keys keep their first occurrence.
        """
        normalized = tuple(self._dedupe(_coerce_entry(e) for e in entries))

        if self._loaded is not None:
            if normalized == self._loaded:
                logger.debug("Catalog reload with identical data ignored")
                return
            raise CatalogError("Catalog is already loaded with different data")

        for entry in normalized:
            self._add_entry(entry)
        self._loaded = normalized

        logger.info("Loaded catalog: %d subtopics across %d grades",
                    len(self.entries), len(self.grades()))

    @staticmethod
    def _dedupe(entries: Iterable[CatalogEntry]) -> List[CatalogEntry]:
        seen: Set[SubTopicKey] = set()
        unique = []
        for entry in entries:
            if entry.key in seen:
                logger.warning("Duplicate catalog entry %s skipped", entry.key)
                continue
            seen.add(entry.key)
            unique.append(entry)
        return unique

    def _add_entry(self, entry: CatalogEntry):
        """Add a leaf and any missing ancestors."""
        grade_node = (entry.grade,)
        subject_node = (entry.grade, entry.subject)
        topic_node = (entry.grade, entry.subject, entry.topic)
        leaf = entry.key

        self.graph.add_node(grade_node, level="grade")
        self.graph.add_node(subject_node, level="subject")
        self.graph.add_node(topic_node, level="topic")
        self.graph.add_node(leaf, level="subtopic")

        self.graph.add_edge(grade_node, subject_node)
        self.graph.add_edge(subject_node, topic_node)
        self.graph.add_edge(topic_node, leaf)

        self.entries[leaf] = entry

    # ==================== Query Methods ====================

    def grades(self) -> List[Grade]:
        return [node[0] for node, level in self.graph.nodes(data="level") if level == "grade"]

    def subjects_for(self, grade) -> Set[Subject]:
        """Subjects with curriculum for a grade. Empty for unknown grades."""
        return set(self.ordered_subjects(grade))

    def ordered_subjects(self, grade) -> List[Subject]:
        """Subjects for a grade in the order they were loaded."""
        grade = _try_grade(grade)
        if grade is None or (grade,) not in self.graph:
            return []
        return [node[1] for node in self.graph.successors((grade,))]

    def points_for(self, grade, subject) -> List[Tuple[str, str]]:
        """(topic, sub_topic) pairs for a grade and subject, in curriculum order."""
        return [(e.topic, e.sub_topic) for e in self.entries_for(grade, subject)]

    def entries_for(self, grade, subject) -> List[CatalogEntry]:
        grade = _try_grade(grade)
        try:
            subject = parse_subject(subject)
        except ValueError:
            return []
        subject_node = (grade, subject)
        if grade is None or subject_node not in self.graph:
            return []

        entries = []
        for topic_node in self.graph.successors(subject_node):
            for leaf in self.graph.successors(topic_node):
                entries.append(self.entries[leaf])
        return entries

    def contains(self, key: SubTopicKey) -> bool:
        return self.entry(key) is not None

    def entry(self, key: SubTopicKey) -> Optional[CatalogEntry]:
        """Entry for a key; plain-string labels are accepted."""
        try:
            return self.entries.get(normalize_key(key))
        except (TypeError, ValueError):
            return None

    def decay_rate_for(self, key: SubTopicKey) -> float:
        """Catalog default decay rate for a key; the global default when unknown."""
        entry = self.entry(key)
        if entry is None or entry.decay_rate_per_day is None:
            return self.default_decay_rate
        return entry.decay_rate_per_day

    # ==================== Seed Data ====================

    def baseline_events(self, now: Optional[datetime] = None) -> List[AssessmentEvent]:
        """Seed observations for entries that ship with a baseline score."""
        now = now or utc_now()
        return [
            AssessmentEvent(
                key=entry.key,
                score=entry.baseline_score,
                observed_at=now - timedelta(days=entry.baseline_days_ago),
            )
            for entry in self.entries.values()
            if entry.baseline_score is not None
        ]

    # ==================== Statistics ====================

    def stats(self) -> dict:
        """Get catalog statistics."""
        grades = self.grades()
        return {
            "total_subtopics": len(self.entries),
            "grades": [g.value for g in grades],
            "subjects_per_grade": {g.value: len(self.ordered_subjects(g)) for g in grades},
            "subtopics_per_grade": {
                g.value: sum(1 for k in self.entries if k.grade == g) for g in grades
            },
        }


# ==================== Data Files ====================

def load_catalog_dir(data_dir: Union[str, Path]) -> List[dict]:
    """
    Read catalog entries from every JSON file in a directory.

    File format:
        {"grade": "Grade 9",
         "subjects": {"Math": [{"topic": "Algebra", "subTopic": "...",
                                "baselineScore": 60}]}}
    """
    data_dir = Path(data_dir)
    entries: List[dict] = []

    if not data_dir.exists():
        logger.warning("Catalog directory %s does not exist", data_dir)
        return entries

    for grade_file in sorted(data_dir.glob("*.json")):
        with open(grade_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        grade = data.get("grade")
        for subject, points in data.get("subjects", {}).items():
            for point in points:
                entries.append({"grade": grade, "subject": subject, **point})

    return entries


def _coerce_entry(raw: Union[CatalogEntry, dict]) -> CatalogEntry:
    """Validate one catalog entry against the closed grade/subject domain."""
    if isinstance(raw, CatalogEntry):
        data = {
            "grade": raw.grade, "subject": raw.subject, "topic": raw.topic,
            "subTopic": raw.sub_topic, "decayRatePerDay": raw.decay_rate_per_day,
            "baselineScore": raw.baseline_score, "baselineDaysAgo": raw.baseline_days_ago,
        }
    else:
        data = raw

    try:
        grade = parse_grade(data["grade"])
        subject = parse_subject(data["subject"])
        topic = str(data["topic"]).strip()
        sub_topic = str(data.get("subTopic", data.get("sub_topic", ""))).strip()
    except (KeyError, ValueError) as e:
        raise CatalogError(f"Invalid catalog entry {raw!r}: {e}") from e

    if not topic or not sub_topic:
        raise CatalogError(f"Invalid catalog entry {raw!r}: empty topic or subTopic")

    decay_rate = data.get("decayRatePerDay")
    if decay_rate is not None and not _is_valid_rate(decay_rate):
        raise CatalogError(f"Invalid catalog entry {raw!r}: decay rate must be a finite number >= 0")

    baseline = data.get("baselineScore")
    if baseline is not None and not (isinstance(baseline, int) and 0 <= baseline <= 100):
        raise CatalogError(f"Invalid catalog entry {raw!r}: baseline score out of range")

    days_ago = data.get("baselineDaysAgo")
    if days_ago is not None and not _is_valid_rate(days_ago):
        raise CatalogError(f"Invalid catalog entry {raw!r}: baselineDaysAgo must be a finite number >= 0")

    return CatalogEntry(
        grade=grade,
        subject=subject,
        topic=topic,
        sub_topic=sub_topic,
        decay_rate_per_day=None if decay_rate is None else float(decay_rate),
        baseline_score=baseline,
        baseline_days_ago=2.0 if days_ago is None else float(days_ago),
    )


def _try_grade(value) -> Optional[Grade]:
    try:
        return parse_grade(value)
    except ValueError:
        return None


def _is_valid_rate(value) -> bool:
    """Finite, non-negative real number (bools and strings excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0

"""
Mastery Tracker - Single entry point for the dashboard's knowledge heatmap.

Wires the catalog, store, merge engine and query engine together:
    load_catalog()        -> once at startup
    submit_assessments()  -> whenever an analysis or quiz reports scores
    query()               -> whenever the presentation layer redraws
    subscribe()           -> presentation layer is told which keys changed
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import config
from analysis_ingest import HomeworkAnalysis, events_from_analysis
from mastery import (
    ALL_SUBJECTS, AssessmentEvent, CatalogEntry, KnowledgeCatalog, MasteryStore,
    MergeEngine, MergeResult, QueryEngine, Subject, SubTopicKey, ViewRecord,
    group_by_topic,
)
from mastery.records import normalize_key

logger = logging.getLogger(__name__)

Listener = Callable[[List[SubTopicKey]], None]


class MasteryTracker:
    """
    One learner's mastery state.

    Single-threaded: batches are merged one at a time and listeners are called
    synchronously after each batch that changed something.
    """

    def __init__(self, catalog: Optional[KnowledgeCatalog] = None):
        self.catalog = catalog or KnowledgeCatalog()
        self.store = MasteryStore()
        self.engine = MergeEngine(self.store, self.catalog.decay_rate_for)
        self.queries = QueryEngine(self.catalog, self.store)
        self._listeners: List[Listener] = []

    # ==================== Catalog ====================

    def load_catalog(self, entries: Iterable[Union[CatalogEntry, dict]]):
        """Load the curriculum. Identical reloads are ignored."""
        self.catalog.load(entries)

    def bootstrap(self, now: Optional[datetime] = None) -> List[MergeResult]:
        """
        Seed the store with the catalog's baseline observations.

        Only keys without a record are seeded, so real observations are never
        overwritten and repeated calls do not reset decay.
        """
        seeds = [e for e in self.catalog.baseline_events(now) if e.key not in self.store]
        return self.submit_assessments(seeds)

    # ==================== Ingestion ====================

    def submit_assessments(self, events: Sequence[AssessmentEvent]) -> List[MergeResult]:
        """
        Merge a batch of scored observations.

        Returns:
            One MergeResult per event, in order
        """
        results = self.engine.merge(events)

        changed = []
        for result in results:
            if result.accepted:
                key = normalize_key(result.event.key)
                if key not in changed:
                    changed.append(key)

        if changed:
            self._notify(changed)
        return results

    def submit_analysis(self, payload: Union[str, bytes, dict, HomeworkAnalysis], grade,
                        observed_at: Optional[datetime] = None) -> List[MergeResult]:
        """Merge the topic scores from one homework analysis."""
        return self.submit_assessments(events_from_analysis(payload, grade, observed_at))

    # ==================== Notifications ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a store-changed listener.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changed: List[SubTopicKey]):
        for listener in list(self._listeners):
            try:
                listener(list(changed))
            except Exception:
                logger.exception("Store-changed listener %r failed", listener)

    # ==================== Queries ====================

    def query(self, grade, subject_filter: Union[Subject, str] = ALL_SUBJECTS,
              search_text: str = "",
              now: Optional[datetime] = None) -> Dict[Subject, List[ViewRecord]]:
        return self.queries.query(grade, subject_filter, search_text, now)

    @staticmethod
    def group_by_topic(records: Iterable[ViewRecord]) -> Dict[str, List[ViewRecord]]:
        return group_by_topic(records)

    def available_subjects(self, grade) -> List[Subject]:
        """Subjects to offer in the subject picker for a grade."""
        return self.catalog.ordered_subjects(grade)

    def snapshot(self) -> List[dict]:
        return self.store.to_rows()


def create_tracker(data_dir=None) -> MasteryTracker:
    """Tracker with the catalog loaded from the configured data directory."""
    return MasteryTracker(KnowledgeCatalog.from_directory(data_dir or config.CATALOG_DIR))


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)

    tracker = create_tracker()
    tracker.subscribe(lambda keys: print(f"   changed: {[k.sub_topic for k in keys]}"))

    print("=== Mastery Tracker Demo ===\n")

    print("1. Bootstrap")
    seeded = tracker.bootstrap()
    print(f"   Seeded {len(seeded)} subtopics")

    print("\n2. Homework Analysis")
    results = tracker.submit_analysis({
        "subject": "Math",
        "errorType": "Careless",
        "topics": [
            {"topic": "Algebra", "subTopic": "Quadratic Equations", "masteryScore": 92},
            {"topic": "Geometry", "subTopic": "Circles", "masteryScore": 150},
        ],
    }, "Grade 9")
    for r in results:
        print(f"   {r.event.key.sub_topic}: {r.outcome.value}")

    print("\n3. Heatmap (Grade 9)")
    for subject, rows in tracker.query("Grade 9").items():
        print(f"   {subject.value} ({len(rows)} nodes)")
        for topic, points in tracker.group_by_topic(rows).items():
            cells = ", ".join(f"{p.sub_topic} {p.effective_score:.0f} [{p.status.value}]"
                              for p in points)
            print(f"     {topic}: {cells}")

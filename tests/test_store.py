"""Tests for mastery/store.py"""

import sys
sys.path.append(".")

from datetime import datetime, timedelta, timezone

import pytest

from mastery import (
    AssessmentEvent, Grade, MasteryStore, MergeEngine, MergeOutcome, Subject, SubTopicKey,
)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=1)
QUADRATIC = SubTopicKey(Grade.GRADE_9, Subject.MATH, "Algebra", "Quadratic Equations")


@pytest.fixture
def store():
    return MasteryStore()


@pytest.fixture
def engine(store):
    return MergeEngine(store, lambda key: 0.1)


def test_first_event_creates_record(engine, store):
    results = engine.merge([AssessmentEvent(QUADRATIC, 55, T0)])

    assert [r.outcome for r in results] == [MergeOutcome.ACCEPTED]
    record = store.get(QUADRATIC)
    assert record.raw_score == 55
    assert record.last_observed_at == T0
    assert record.decay_rate_per_day == 0.1


def test_newer_observation_wins(engine, store):
    engine.merge([AssessmentEvent(QUADRATIC, 55, T0)])
    results = engine.merge([AssessmentEvent(QUADRATIC, 92, T1)])

    assert results[0].accepted
    assert store.get(QUADRATIC).raw_score == 92
    assert store.get(QUADRATIC).last_observed_at == T1


def test_late_arriving_older_observation_is_stale(engine, store):
    engine.merge([AssessmentEvent(QUADRATIC, 92, T1)])
    results = engine.merge([AssessmentEvent(QUADRATIC, 40, T0)])

    assert results[0].outcome is MergeOutcome.IGNORED_STALE
    assert store.get(QUADRATIC).raw_score == 92
    assert store.get(QUADRATIC).last_observed_at == T1


def test_out_of_range_score_rejected(engine, store):
    results = engine.merge([AssessmentEvent(QUADRATIC, 150, T0)])

    assert results[0].outcome is MergeOutcome.REJECTED_INVALID
    assert "150" in results[0].reason
    assert len(store) == 0


@pytest.mark.parametrize("score", [-1, 101, 92.5, True, "80", None])
def test_malformed_scores_rejected(engine, store, score):
    results = engine.merge([AssessmentEvent(QUADRATIC, score, T0)])
    assert results[0].outcome is MergeOutcome.REJECTED_INVALID
    assert QUADRATIC not in store


def test_boundary_scores_accepted(engine, store):
    other = QUADRATIC._replace(sub_topic="Linear Equations")
    results = engine.merge([AssessmentEvent(QUADRATIC, 0, T0), AssessmentEvent(other, 100, T0)])
    assert all(r.accepted for r in results)


def test_bad_key_and_timestamp_rejected(engine, store):
    results = engine.merge([
        AssessmentEvent(SubTopicKey("Grade 9", "Maths", "Algebra", "Quadratic Equations"), 70, T0),
        AssessmentEvent(SubTopicKey("Grade 13", "Math", "Algebra", "Quadratic Equations"), 70, T0),
        AssessmentEvent(SubTopicKey("Grade 9", "Math", "", "Quadratic Equations"), 70, T0),
        AssessmentEvent(QUADRATIC, 70, "2026-03-01"),
    ])
    assert all(r.outcome is MergeOutcome.REJECTED_INVALID for r in results)
    assert len(store) == 0


def test_invalid_event_does_not_abort_batch(engine, store):
    results = engine.merge([
        AssessmentEvent(QUADRATIC, 150, T0),
        AssessmentEvent(QUADRATIC, 70, T0),
    ])
    assert [r.outcome for r in results] == [MergeOutcome.REJECTED_INVALID, MergeOutcome.ACCEPTED]
    assert store.get(QUADRATIC).raw_score == 70


def test_string_labels_normalize_to_same_key(engine, store):
    engine.merge([AssessmentEvent(SubTopicKey("Grade 9", "Math", "Algebra", "Quadratic Equations"), 70, T0)])
    assert store.get(QUADRATIC).raw_score == 70


def test_unknown_subtopic_accepted(engine, store):
    novel = SubTopicKey(Grade.GRADE_9, Subject.MATH, "Algebra", "Completing the Square")
    assert engine.merge([AssessmentEvent(novel, 65, T0)])[0].accepted
    assert store.get(novel).raw_score == 65


def test_idempotent(store, engine):
    event = AssessmentEvent(QUADRATIC, 77, T0)
    engine.merge([event])
    once = store.to_rows()
    engine.merge([event])
    assert store.to_rows() == once


def test_commutative_for_distinct_timestamps():
    e1 = AssessmentEvent(QUADRATIC, 40, T0)
    e2 = AssessmentEvent(QUADRATIC, 92, T1)

    forward, backward = MasteryStore(), MasteryStore()
    MergeEngine(forward, lambda key: 0.1).merge([e1, e2])
    MergeEngine(backward, lambda key: 0.1).merge([e2, e1])

    assert forward.to_rows() == backward.to_rows()
    assert forward.get(QUADRATIC).raw_score == 92


def test_naive_timestamps_treated_as_utc(engine, store):
    engine.merge([AssessmentEvent(QUADRATIC, 92, T1)])
    naive_older = T0.replace(tzinfo=None)
    assert engine.merge([AssessmentEvent(QUADRATIC, 40, naive_older)])[0].outcome \
        is MergeOutcome.IGNORED_STALE


def test_update_keeps_decay_rate(store):
    rates = iter([3.0, 99.0])
    engine = MergeEngine(store, lambda key: next(rates))
    engine.merge([AssessmentEvent(QUADRATIC, 50, T0)])
    engine.merge([AssessmentEvent(QUADRATIC, 60, T1)])
    assert store.get(QUADRATIC).decay_rate_per_day == 3.0


def test_merge_is_not_reentrant(store):
    engine = None

    def reentrant_rate(key):
        engine.merge([AssessmentEvent(QUADRATIC, 10, T0)])
        return 0.1

    engine = MergeEngine(store, reentrant_rate)
    with pytest.raises(RuntimeError):
        engine.merge([AssessmentEvent(QUADRATIC, 50, T0)])

    # Guard is released after the failure
    engine.decay_rate_for = lambda key: 0.1
    assert engine.merge([AssessmentEvent(QUADRATIC, 50, T0)])[0].accepted


def test_rows_round_trip(engine, store):
    engine.merge([AssessmentEvent(QUADRATIC, 92, T1)])
    restored = MasteryStore.from_rows(store.to_rows())
    assert restored.get(QUADRATIC) == store.get(QUADRATIC)


def test_store_lookups_accept_plain_string_keys(engine, store):
    engine.merge([AssessmentEvent(QUADRATIC, 70, T0)])
    plain = SubTopicKey("Grade 9", "Math", "Algebra", "Quadratic Equations")
    assert plain in store
    assert store.get(plain).raw_score == 70
    assert store.get(("Grade 13", "Math", "Algebra", "Quadratic Equations")) is None
    assert store.get("not a key") is None

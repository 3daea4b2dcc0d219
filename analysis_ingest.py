"""
Analysis Ingest - Turns homework-analysis payloads into assessment events.

The analysis service returns JSON shaped like:
    {
        "subject": "Math",
        "ocrText": "...",
        "errorType": "Foundational" | "Misinterpretation" | "Careless" | "None",
        "errorExplanation": "...",
        "topics": [{"topic": "Algebra", "subTopic": "...", "masteryScore": 55}]
    }

Scores are passed through unchanged; range checks belong to the merge engine
so that a producer bug shows up as a rejected event rather than being clamped.
"""

import logging
from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, StrictInt, ValidationError

from mastery.records import AssessmentEvent, SubTopicKey, utc_now

logger = logging.getLogger(__name__)


# ==================== Payload Models ====================

class TopicScore(BaseModel):
    topic: str
    subTopic: str
    # Left loose so a bad score is rejected per topic by the merge engine
    masteryScore: Union[StrictInt, float, str, None]


class HomeworkAnalysis(BaseModel):
    subject: str = "Math"
    ocrText: str = "No text detected"
    errorType: Literal["Foundational", "Misinterpretation", "Careless", "None"] = "None"
    errorExplanation: str = "Analysis complete."
    topics: List[TopicScore] = []


# ==================== Conversion ====================

def parse_analysis(payload: Union[str, bytes, dict]) -> Optional[HomeworkAnalysis]:
    """Validate a raw payload. Returns None (and logs) if it does not fit the schema."""
    try:
        if isinstance(payload, (str, bytes)):
            return HomeworkAnalysis.model_validate_json(payload)
        return HomeworkAnalysis.model_validate(payload)
    except ValidationError as e:
        logger.warning("Discarding malformed analysis payload: %s", e)
        return None


def events_from_analysis(payload: Union[str, bytes, dict, HomeworkAnalysis], grade,
                         observed_at: Optional[datetime] = None) -> List[AssessmentEvent]:
    """
    Build one AssessmentEvent per scored topic in an analysis.

    Args:
        payload: Raw JSON text, a decoded dict, or an already-parsed analysis
        grade: Grade the learner is in; the analysis does not report it
        observed_at: When the work was assessed (defaults to now)

    Returns:
        Events in payload order; empty if the payload is malformed
    """
    analysis = payload if isinstance(payload, HomeworkAnalysis) else parse_analysis(payload)
    if analysis is None:
        return []

    observed_at = observed_at or utc_now()
    return [
        AssessmentEvent(
            key=SubTopicKey(grade, analysis.subject, t.topic, t.subTopic),
            score=t.masteryScore,
            observed_at=observed_at,
        )
        for t in analysis.topics
    ]

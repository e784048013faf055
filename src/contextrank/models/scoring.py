"""
Scoring models: task characteristics, weight profiles, scoring context and
the enriched match returned by the relevance scorer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from contextrank.models.base import FrozenModel
from contextrank.models.search import Match


class ComplexityLevel(str, Enum):
    """Requested task complexity."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    EXPERT = "expert"

    @property
    def score(self) -> float:
        return COMPLEXITY_SCORES[self.value]


COMPLEXITY_SCORES = {
    "simple": 0.2,
    "moderate": 0.5,
    "complex": 0.8,
    "expert": 1.0,
}


class TaskCharacteristics(FrozenModel):
    """
    What the caller needs from the selected item.

    Recognized constraints:
    - max_execution_time: average latency ceiling in milliseconds
    - no_external_api: penalize items that call external services
    """

    complexity: ComplexityLevel = ComplexityLevel.MODERATE
    required_capabilities: List[str] = Field(default_factory=list)
    data_requirements: Dict[str, Any] = Field(default_factory=dict)
    constraints: Dict[str, Any] = Field(default_factory=dict)

    @property
    def complexity_score(self) -> float:
        return COMPLEXITY_SCORES[ComplexityLevel(self.complexity).value]


class WeightProfile(FrozenModel):
    """Per-signal weights of the final relevance score."""

    semantic_similarity: float = Field(0.30, ge=0)
    contextual_relevance: float = Field(0.20, ge=0)
    historical_success: float = Field(0.15, ge=0)
    co_occurrence: float = Field(0.10, ge=0)
    user_preference: float = Field(0.10, ge=0)
    task_complexity: float = Field(0.10, ge=0)
    performance_metrics: float = Field(0.05, ge=0)
    capability_match: float = Field(0.15, ge=0)
    data_compatibility: float = Field(0.10, ge=0)
    constraint_satisfaction: float = Field(0.10, ge=0)

    def weights(self) -> Dict[str, float]:
        return self.model_dump()


class ScoringContext(FrozenModel):
    """Immutable context for one scoring call."""

    query: str = ""
    actor_id: str = Field(..., min_length=1)
    session_id: Optional[str] = Field(None, description="Session / workflow id")
    current_state: Dict[str, Any] = Field(default_factory=dict)
    previous_selections: List[str] = Field(default_factory=list)
    task: Optional[TaskCharacteristics] = None
    weight_profile: Optional[Union[str, WeightProfile]] = None

    @property
    def context_key(self) -> str:
        """Context signature: sorted state keys joined by '_'."""
        return context_key_for(self.current_state)

    @property
    def effective_task(self) -> TaskCharacteristics:
        return self.task if self.task is not None else TaskCharacteristics()


def context_key_for(state: Optional[Dict[str, Any]]) -> str:
    return "_".join(sorted(state or {}))


@dataclass
class ScoredMatch:
    """Search match enriched with signals, confidence and explanations."""

    match: Match
    relevance_score: float
    signals: Dict[str, float]
    confidence: float
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: Dict[str, Any] = field(default_factory=dict)
    explanation: str = ""
    annotations: Dict[str, float] = field(default_factory=dict)

    @property
    def item_id(self) -> str:
        return self.match.item.id

    @property
    def categories(self) -> List[str]:
        return self.match.item.categories

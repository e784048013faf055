"""
Multi-signal relevance scoring.

Re-scores search matches with ten signals derived from the match itself,
the usage ledger, the relationship graph and the scoring context, then
blends them with a weight profile. Each result carries strengths,
weaknesses, a confidence, recommendations and an explanation.
"""

from typing import Any, Dict, List, Optional

from contextrank.core.logging import logger
from contextrank.core.tracing import MetricsCollector
from contextrank.models.item import Item
from contextrank.models.scoring import (
    ScoredMatch,
    ScoringContext,
    TaskCharacteristics,
    WeightProfile,
)
from contextrank.models.search import Match
from contextrank.scoring.relationships import RelationshipGraph
from contextrank.scoring.rerank import diversity_rerank
from contextrank.scoring.usage import UsageLedger, UsageSnapshot
from contextrank.scoring.weights import WeightProfileRegistry

RECENT_SUCCESS_BONUS = 0.1
RECENT_SUCCESS_THRESHOLD = 0.8
RECENT_SUCCESS_WINDOW = 5

# (signal, threshold, text)
STRENGTH_RULES = (
    ("semantic_similarity", 0.8, "Excellent semantic match to query"),
    ("historical_success", 0.85, "Proven track record of success"),
    ("performance_metrics", 0.9, "Fast and reliable execution"),
    ("user_preference", 0.7, "Frequently used by you"),
    ("capability_match", 0.9, "Perfect capability match"),
)
WEAKNESS_RULES = (
    ("semantic_similarity", 0.5, "Lower semantic relevance"),
    ("historical_success", 0.6, "Mixed success history"),
    ("performance_metrics", 0.5, "Slower execution time"),
    ("data_compatibility", 0.7, "May require data transformation"),
    ("constraint_satisfaction", 0.8, "Some constraints not fully met"),
)


def item_complexity(item: Item) -> float:
    """Complexity estimate from input schema size and category count."""
    properties = item.input_schema.get("properties")
    field_count = len(properties) if isinstance(properties, dict) else 0
    schema_complexity = min(1.0, field_count / 10.0)
    category_complexity = min(1.0, len(item.categories) / 5.0)
    return (schema_complexity + category_complexity) / 2


def _variance(values: List[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


class RelevanceScorer:
    """
    Scores matches against a ScoringContext.

    Signals without data fall back to neutral defaults, so an engine with no
    recorded usage still ranks by semantic and capability fit.
    """

    def __init__(
        self,
        ledger: UsageLedger,
        graph: RelationshipGraph,
        profiles: WeightProfileRegistry,
        diversity_threshold: int = 5,
        diversity_window: int = 10,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.ledger = ledger
        self.graph = graph
        self.profiles = profiles
        self.diversity_threshold = diversity_threshold
        self.diversity_window = diversity_window
        self.metrics = metrics

    def score(self, matches: List[Match], context: ScoringContext) -> List[ScoredMatch]:
        """
        Score, sort and diversify matches.

        Raises:
            ValidationError: Unknown weight profile name
        """
        profile = self.profiles.resolve(context.weight_profile)
        task = context.effective_task

        scored = [self._score_one(match, context, task, profile) for match in matches]
        scored.sort(key=lambda s: (-s.relevance_score, s.item_id))

        for result in scored:
            stats = self.ledger.stats(result.item_id)
            recent = stats.recent_mean(RECENT_SUCCESS_WINDOW) if stats is not None else None
            if recent is not None and recent > RECENT_SUCCESS_THRESHOLD:
                result.annotations["recent_success_boost"] = RECENT_SUCCESS_BONUS

        scored = diversity_rerank(scored, self.diversity_threshold, self.diversity_window)

        if self.metrics is not None:
            self.metrics.increment("scoring.requests")
            self.metrics.increment("scoring.matches", len(scored))

        logger.debug("Matches scored", count=len(scored), actor=context.actor_id)
        return scored

    # ------------------------------------------------------------------
    # One match
    # ------------------------------------------------------------------

    def _score_one(
        self,
        match: Match,
        context: ScoringContext,
        task: TaskCharacteristics,
        profile: WeightProfile,
    ) -> ScoredMatch:
        signals = self.signals(match, context, task)

        weights = profile.weights()
        total_weight = sum(weights[name] for name in signals)
        weighted = sum(weights[name] * value for name, value in signals.items())
        relevance = weighted / total_weight if total_weight > 0 else 0.0

        strengths = [text for name, limit, text in STRENGTH_RULES if signals.get(name, 0.0) > limit]
        weaknesses = [
            text
            for name, limit, text in WEAKNESS_RULES
            if name in signals and signals[name] < limit
        ]

        return ScoredMatch(
            match=match,
            relevance_score=relevance,
            signals=signals,
            confidence=self._confidence(signals, match),
            strengths=strengths,
            weaknesses=weaknesses,
            recommendations=self._recommendations(match.item, signals),
            explanation=self._explanation(match, signals, strengths),
        )

    def signals(
        self, match: Match, context: ScoringContext, task: TaskCharacteristics
    ) -> Dict[str, float]:
        """All signals available for a match, each in [0, 1]."""
        item = match.item
        stats = self.ledger.stats(item.id)

        signals: Dict[str, float] = {}
        if match.vector_score is not None:
            signals["semantic_similarity"] = _clamp(match.vector_score)
        signals["contextual_relevance"] = self._contextual_relevance(item.id, context)
        signals["historical_success"] = self._historical_success(stats)
        signals["co_occurrence"] = self._co_occurrence(item.id, context)
        signals["user_preference"] = self._user_preference(item.id, context)
        complexity_gap = abs(item_complexity(item) - task.complexity_score)
        signals["task_complexity"] = max(0.0, 1.0 - complexity_gap)
        signals["performance_metrics"] = self._performance(stats)
        signals["capability_match"] = self._capability_match(item, task)
        signals["data_compatibility"] = self._data_compatibility(item, context)
        signals["constraint_satisfaction"] = self._constraint_satisfaction(item, stats, task)
        return signals

    def _contextual_relevance(self, item_id: str, context: ScoringContext) -> float:
        base = self.ledger.context_relevance(context.actor_id, context.context_key, item_id)
        if base is None:
            return 0.5

        previous = context.previous_selections
        if item_id in previous:
            # Repetition penalty
            base *= 0.8

        if previous:
            predicted = self.ledger.predicted_successors(
                context.actor_id, context.session_id, previous[-1]
            )
            if item_id in predicted:
                base = min(1.0, base + 0.3)

        return _clamp(base)

    @staticmethod
    def _historical_success(stats: Optional[UsageSnapshot]) -> float:
        if stats is None:
            return 0.7
        actor_breadth = min(1.0, stats.actor_count / 10.0)
        return _clamp(
            stats.success_rate * 0.4
            + stats.recent_satisfaction * 0.3
            + stats.reliability * 0.2
            + actor_breadth * 0.1
        )

    def _co_occurrence(self, item_id: str, context: ScoringContext) -> float:
        previous = context.previous_selections
        if not previous:
            return 0.5

        total = 0.0
        for previous_id in previous:
            score = self.graph.co_occurrence(previous_id, item_id)
            if self.graph.are_complementary(previous_id, item_id):
                score += 0.3
            total += min(1.0, score)
        return total / len(previous)

    def _user_preference(self, item_id: str, context: ScoringContext) -> float:
        item_uses, actor_total = self.ledger.actor_usage(context.actor_id, item_id)
        if item_uses == 0 or actor_total == 0:
            return 0.5
        return min(1.0, item_uses / actor_total * 10)

    @staticmethod
    def _performance(stats: Optional[UsageSnapshot]) -> float:
        if stats is None:
            return 0.7
        latency = stats.average_latency_ms
        if latency < 500:
            time_score = 1.0
        elif latency < 2000:
            time_score = 0.8
        elif latency < 5000:
            time_score = 0.6
        else:
            time_score = 0.3
        return time_score * stats.reliability

    @staticmethod
    def _capability_match(item: Item, task: TaskCharacteristics) -> float:
        required = task.required_capabilities
        if not required:
            return 1.0
        capabilities = [c.lower() for c in item.categories + item.keywords]
        matched = sum(
            1 for capability in required if any(capability.lower() in c for c in capabilities)
        )
        return matched / len(required)

    @staticmethod
    def _data_compatibility(item: Item, context: ScoringContext) -> float:
        required = item.required_inputs
        if not item.input_schema or not required:
            return 1.0
        present = sum(1 for name in required if name in context.current_state)
        return present / len(required)

    @staticmethod
    def _constraint_satisfaction(
        item: Item, stats: Optional[UsageSnapshot], task: TaskCharacteristics
    ) -> float:
        constraints = task.constraints
        score = 1.0

        max_time = constraints.get("max_execution_time")
        if (
            isinstance(max_time, (int, float))
            and stats is not None
            and stats.average_latency_ms > max_time
        ):
            score *= 0.5

        if constraints.get("no_external_api") and item.uses_external_api:
            score *= 0.1

        return score

    # ------------------------------------------------------------------
    # Explanations
    # ------------------------------------------------------------------

    @staticmethod
    def _confidence(signals: Dict[str, float], match: Match) -> float:
        """High when signals agree and most of them are available."""
        values = list(signals.values())
        variance_score = 1.0 - min(1.0, _variance(values) * 2)
        completeness = len(values) / 10.0
        base = signals.get("semantic_similarity", _clamp(match.score))
        return _clamp((variance_score * 0.6 + completeness * 0.4) * base)

    def _recommendations(self, item: Item, signals: Dict[str, float]) -> Dict[str, Any]:
        recommendations: Dict[str, Any] = {}

        if signals["task_complexity"] < 0.7:
            recommendations["adjust_parameters"] = (
                "Consider adjusting parameters for the task complexity"
            )

        alternatives = self.graph.substitutes(item.id)
        if alternatives:
            recommendations["alternatives"] = alternatives

        if signals["capability_match"] < 0.8:
            complements = self.graph.complements(item.id)
            recommendations["combine_with"] = complements or (
                "Consider combining with specialized items for missing capabilities"
            )

        return recommendations

    @staticmethod
    def _explanation(match: Match, signals: Dict[str, float], strengths: List[str]) -> str:
        parts = [match.explanation]

        if signals["contextual_relevance"] > 0.7:
            parts.append("Highly relevant in current context.")
        if signals["co_occurrence"] > 0.6:
            parts.append("Works well with previously selected items.")

        if strengths:
            summary = f"Key strengths: {strengths[0]}"
            if len(strengths) > 1:
                summary += f" and {len(strengths) - 1} more"
            parts.append(summary + ".")

        return " ".join(parts)

"""
Tests for multi-signal relevance scoring, the usage ledger, the relationship
graph, weight profiles and diversity re-ranking.
"""

from typing import Any, List, Optional

import pytest

from contextrank.core.exceptions import ConfigurationError, ValidationError
from contextrank.models.item import Item
from contextrank.models.scoring import (
    ComplexityLevel,
    ScoredMatch,
    ScoringContext,
    TaskCharacteristics,
    WeightProfile,
)
from contextrank.models.search import Match
from contextrank.scoring.relationships import RelationshipGraph
from contextrank.scoring.relevance import RelevanceScorer, item_complexity
from contextrank.scoring.rerank import diversity_rerank
from contextrank.scoring.usage import SATISFACTION_WINDOW, UsageLedger
from contextrank.scoring.weights import WeightProfileRegistry


def make_match(
    item_id: str,
    vector_score: Optional[float] = 0.8,
    categories: Optional[List[str]] = None,
    **fields: Any,
) -> Match:
    item = Item(
        id=item_id,
        content=f"{item_id} tool",
        array_metadata={"categories": categories or ["math"], **fields.pop("arrays", {})},
        **fields,
    )
    score = vector_score if vector_score is not None else 0.4
    return Match(item=item, score=score, mode="vector_only", vector_score=vector_score)


@pytest.fixture
def ledger() -> UsageLedger:
    return UsageLedger()


@pytest.fixture
def graph() -> RelationshipGraph:
    return RelationshipGraph()


@pytest.fixture
def scorer(ledger: UsageLedger, graph: RelationshipGraph) -> RelevanceScorer:
    return RelevanceScorer(ledger, graph, WeightProfileRegistry())


def signals_for(scorer: RelevanceScorer, match: Match, context: ScoringContext):
    return scorer.signals(match, context, context.effective_task)


class TestNeutralDefaults:
    """An engine without history still produces sensible scores."""

    def test_weighted_average_of_defaults(self, scorer: RelevanceScorer) -> None:
        """Signals without data take their neutral values."""
        result = scorer.score([make_match("a")], ScoringContext(actor_id="u1"))[0]

        assert result.signals == pytest.approx(
            {
                "semantic_similarity": 0.8,
                "contextual_relevance": 0.5,
                "historical_success": 0.7,
                "co_occurrence": 0.5,
                "user_preference": 0.5,
                "task_complexity": 0.6,
                "performance_metrics": 0.7,
                "capability_match": 1.0,
                "data_compatibility": 1.0,
                "constraint_satisfaction": 1.0,
            }
        )
        assert result.relevance_score == pytest.approx(0.99 / 1.35)

    def test_missing_vector_score_drops_semantic_signal(self, scorer: RelevanceScorer) -> None:
        """Keyword matches are scored over the remaining signals only."""
        result = scorer.score(
            [make_match("a", vector_score=None)], ScoringContext(actor_id="u1")
        )[0]

        assert "semantic_similarity" not in result.signals
        assert result.relevance_score == pytest.approx(0.75 / 1.05)

    def test_scores_in_unit_interval(self, scorer: RelevanceScorer) -> None:
        matches = [make_match("a", 1.0), make_match("b", -0.5), make_match("c", None)]
        for result in scorer.score(matches, ScoringContext(actor_id="u1")):
            assert 0.0 <= result.relevance_score <= 1.0
            assert 0.0 <= result.confidence <= 1.0
            assert all(0.0 <= value <= 1.0 for value in result.signals.values())

    def test_deterministic(self, scorer: RelevanceScorer) -> None:
        matches = [make_match(f"item-{i}", 0.1 * i) for i in range(8)]
        context = ScoringContext(actor_id="u1", previous_selections=["item-2"])

        first = [(r.item_id, r.relevance_score) for r in scorer.score(matches, context)]
        second = [(r.item_id, r.relevance_score) for r in scorer.score(matches, context)]

        assert first == second


class TestUsageSignals:
    """Signals derived from the usage ledger."""

    def test_successful_history(self, scorer: RelevanceScorer, ledger: UsageLedger) -> None:
        for _ in range(10):
            ledger.record_usage("a", "u1", success=True, latency_ms=100)

        result = scorer.score([make_match("a")], ScoringContext(actor_id="u2"))[0]

        assert result.signals["historical_success"] == pytest.approx(0.91)
        assert result.signals["performance_metrics"] == pytest.approx(1.0)
        assert "Proven track record of success" in result.strengths
        assert "Fast and reliable execution" in result.strengths
        assert result.annotations == {"recent_success_boost": 0.1}

    def test_failing_history(self, scorer: RelevanceScorer, ledger: UsageLedger) -> None:
        for _ in range(10):
            ledger.record_usage("a", "u1", success=False, latency_ms=100, error="Timeout")

        result = scorer.score([make_match("a")], ScoringContext(actor_id="u2"))[0]

        assert result.signals["historical_success"] == pytest.approx(0.104)
        assert "Mixed success history" in result.weaknesses
        assert result.annotations == {}

    def test_user_preference(self, scorer: RelevanceScorer, ledger: UsageLedger) -> None:
        ledger.record_usage("a", "u1", success=True, latency_ms=10)
        ledger.record_usage("b", "u1", success=True, latency_ms=10)

        own = signals_for(scorer, make_match("a"), ScoringContext(actor_id="u1"))
        other = signals_for(scorer, make_match("a"), ScoringContext(actor_id="u2"))

        assert own["user_preference"] == 1.0
        assert other["user_preference"] == 0.5

    def test_context_frequency(self, scorer: RelevanceScorer, ledger: UsageLedger) -> None:
        for _ in range(3):
            ledger.record_usage("a", "u1", True, 10, state={"amount": 1})
        ledger.record_usage("b", "u1", True, 10, state={"amount": 2})

        context = ScoringContext(actor_id="u1", current_state={"amount": 5})

        assert signals_for(scorer, make_match("a"), context)["contextual_relevance"] == (
            pytest.approx(0.75)
        )
        assert signals_for(scorer, make_match("b"), context)["contextual_relevance"] == (
            pytest.approx(0.25)
        )

    def test_repetition_and_successor_prediction(
        self, scorer: RelevanceScorer, ledger: UsageLedger
    ) -> None:
        """Repeats are penalized, items that usually follow are boosted."""
        for _ in range(3):
            ledger.record_usage("a", "u1", True, 10, state={"amount": 1})
        ledger.record_usage("b", "u1", True, 10, state={"amount": 2})

        context = ScoringContext(
            actor_id="u1", current_state={"amount": 5}, previous_selections=["a"]
        )

        assert signals_for(scorer, make_match("a"), context)["contextual_relevance"] == (
            pytest.approx(0.9)
        )
        assert signals_for(scorer, make_match("b"), context)["contextual_relevance"] == (
            pytest.approx(0.55)
        )

    def test_latency_constraint(self, scorer: RelevanceScorer, ledger: UsageLedger) -> None:
        ledger.record_usage("a", "u1", True, latency_ms=3000)
        task = TaskCharacteristics(constraints={"max_execution_time": 1000})

        signals = signals_for(scorer, make_match("a"), ScoringContext(actor_id="u1", task=task))

        assert signals["constraint_satisfaction"] == 0.5
        assert signals["performance_metrics"] == pytest.approx(0.6 * 0.5)


class TestItemSignals:
    """Signals derived from the item and the task."""

    def test_capability_match(self, scorer: RelevanceScorer) -> None:
        task = TaskCharacteristics(required_capabilities=["finance", "crypto"])
        match = make_match("a", categories=["finance"], arrays={"keywords": ["currency"]})

        result = scorer.score([match], ScoringContext(actor_id="u1", task=task))[0]

        assert result.signals["capability_match"] == 0.5
        assert result.recommendations["combine_with"] == (
            "Consider combining with specialized items for missing capabilities"
        )

    def test_combine_with_lists_complements(
        self, scorer: RelevanceScorer, graph: RelationshipGraph
    ) -> None:
        graph.record("a", "wallet", "complementary")
        graph.record("a", "exchange", "complementary")
        task = TaskCharacteristics(required_capabilities=["crypto"])

        result = scorer.score([make_match("a")], ScoringContext(actor_id="u1", task=task))[0]

        assert result.recommendations["combine_with"] == ["exchange", "wallet"]

    def test_data_compatibility(self, scorer: RelevanceScorer) -> None:
        schema = {
            "properties": {"amount": {"type": "number"}, "currency": {"type": "string"}},
            "required": ["amount", "currency"],
        }
        match = make_match("a", nested_metadata={"input_schema": schema})
        context = ScoringContext(actor_id="u1", current_state={"amount": 10})

        result = scorer.score([match], context)[0]

        assert result.signals["data_compatibility"] == 0.5
        assert "May require data transformation" in result.weaknesses

    def test_external_api_constraint(self, scorer: RelevanceScorer) -> None:
        match = make_match("a", structured_metadata={"uses_external_api": True})
        task = TaskCharacteristics(constraints={"no_external_api": True})

        signals = signals_for(scorer, match, ScoringContext(actor_id="u1", task=task))

        assert signals["constraint_satisfaction"] == pytest.approx(0.1)

    def test_task_complexity(self, scorer: RelevanceScorer) -> None:
        schema = {"properties": {f"field_{i}": {"type": "string"} for i in range(10)}}
        match = make_match(
            "a",
            categories=["a", "b", "c", "d", "e"],
            nested_metadata={"input_schema": schema},
        )
        assert item_complexity(match.item) == 1.0

        expert = TaskCharacteristics(complexity=ComplexityLevel.EXPERT)
        simple = TaskCharacteristics(complexity=ComplexityLevel.SIMPLE)

        expert_result = scorer.score([match], ScoringContext(actor_id="u1", task=expert))[0]
        simple_result = scorer.score([match], ScoringContext(actor_id="u1", task=simple))[0]

        assert expert_result.signals["task_complexity"] == pytest.approx(1.0)
        assert simple_result.signals["task_complexity"] == pytest.approx(0.2)
        assert "adjust_parameters" in simple_result.recommendations
        assert "adjust_parameters" not in expert_result.recommendations

    def test_explanation(self, scorer: RelevanceScorer) -> None:
        result = scorer.score([make_match("a", 0.95)], ScoringContext(actor_id="u1"))[0]

        assert result.explanation.startswith("Matched via vector_only search")
        assert "Key strengths: Excellent semantic match to query" in result.explanation


class TestRelationshipSignals:
    """Co-occurrence and relationship edges."""

    def test_same_workflow_co_occurrence(
        self, scorer: RelevanceScorer, graph: RelationshipGraph
    ) -> None:
        graph.record("a", "b", "co_occurrence")
        context = ScoringContext(actor_id="u1", previous_selections=["a"])

        result = scorer.score([make_match("b")], context)[0]

        assert result.signals["co_occurrence"] == 1.0
        assert "Works well with previously selected items." in result.explanation

    def test_cross_workflow_and_complementary(
        self, scorer: RelevanceScorer, graph: RelationshipGraph
    ) -> None:
        graph.record("a", "b", "co_occurrence", same_workflow=False)
        graph.record("a", "b", "complementary")
        context = ScoringContext(actor_id="u1", previous_selections=["a", "c"])

        signals = signals_for(scorer, make_match("b"), context)

        # (0.3 + 0.3) for "a", nothing for "c"
        assert signals["co_occurrence"] == pytest.approx(0.3)

    def test_alternatives(self, scorer: RelevanceScorer, graph: RelationshipGraph) -> None:
        graph.record("a", "z-alt", "substitutable")
        graph.record("a", "b-alt", "substitutable")

        result = scorer.score([make_match("a")], ScoringContext(actor_id="u1"))[0]

        assert result.recommendations["alternatives"] == ["b-alt", "z-alt"]


class TestUsageLedger:
    """Validation and bookkeeping of recorded uses."""

    def test_invalid_inputs(self, ledger: UsageLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.record_usage("", "u1", True, 10)
        with pytest.raises(ValidationError):
            ledger.record_usage("a", "u1", True, -1)
        with pytest.raises(ValidationError):
            ledger.record_usage("a", "u1", True, 10, satisfaction=1.5)
        assert ledger.stats("a") is None

    def test_error_types_counted_on_failure_only(self, ledger: UsageLedger) -> None:
        ledger.record_usage("a", "u1", True, 10, error="ignored")
        ledger.record_usage("a", "u1", False, 10, error="Timeout")
        ledger.record_usage("a", "u1", False, 10, error="Timeout")
        ledger.record_usage("a", "u1", False, 10)

        stats = ledger.stats("a")
        assert stats.total_uses == 4
        assert stats.successful_uses == 1
        assert stats.error_types == 1
        assert stats.average_latency_ms == pytest.approx(10.0)

    def test_satisfaction_window(self, ledger: UsageLedger) -> None:
        for _ in range(SATISFACTION_WINDOW):
            ledger.record_usage("a", "u1", False, 10)
        for _ in range(5):
            ledger.record_usage("a", "u1", True, 10)

        stats = ledger.stats("a")
        assert len(stats.last_satisfaction) == SATISFACTION_WINDOW
        assert stats.recent_mean(5) == 1.0
        assert stats.recent_satisfaction == pytest.approx(5 / SATISFACTION_WINDOW)

    def test_reliability_needs_enough_uses(self, ledger: UsageLedger) -> None:
        for _ in range(9):
            ledger.record_usage("a", "u1", True, 10)
        assert ledger.stats("a").reliability == 0.5

        ledger.record_usage("a", "u1", True, 10)
        assert ledger.stats("a").reliability == pytest.approx(1.0)


class TestRelationshipGraph:
    """Edge validation and symmetry."""

    def test_symmetric(self, graph: RelationshipGraph) -> None:
        graph.record("a", "b", "co_occurrence")
        graph.record("b", "a", "co_occurrence", same_workflow=False)
        graph.record("a", "c", "complementary")

        assert graph.co_occurrence("a", "b") == pytest.approx(1.3)
        assert graph.co_occurrence("b", "a") == pytest.approx(1.3)
        assert graph.are_complementary("c", "a")
        assert graph.edge_count() == 2

    def test_invalid_edges(self, graph: RelationshipGraph) -> None:
        with pytest.raises(ValidationError):
            graph.record("a", "b", "enemies")
        with pytest.raises(ValidationError):
            graph.record("a", "a", "complementary")
        with pytest.raises(ValidationError):
            graph.record("", "b", "complementary")
        assert graph.edge_count() == 0


class TestWeightProfiles:
    """Built-in and custom weight profiles."""

    def test_builtin_profiles(self) -> None:
        assert WeightProfileRegistry().names() == ["default", "exploration", "precision"]

    def test_unknown_profile(self, scorer: RelevanceScorer) -> None:
        context = ScoringContext(actor_id="u1", weight_profile="missing")
        with pytest.raises(ValidationError) as exc_info:
            scorer.score([make_match("a")], context)
        assert "default" in exc_info.value.suggestions[0]

    def test_profile_changes_score(self, scorer: RelevanceScorer) -> None:
        match = make_match("a", 0.2)
        default = scorer.score([match], ScoringContext(actor_id="u1"))[0]
        precision = scorer.score(
            [match], ScoringContext(actor_id="u1", weight_profile="precision")
        )[0]
        assert precision.relevance_score != pytest.approx(default.relevance_score)

    def test_inline_profile(self, scorer: RelevanceScorer) -> None:
        """Only semantic similarity counts: the score is the vector score."""
        zeros = {name: 0.0 for name in WeightProfile().weights()}
        profile = WeightProfile(**{**zeros, "semantic_similarity": 1.0})
        context = ScoringContext(actor_id="u1", weight_profile=profile)

        result = scorer.score([make_match("a", 0.42)], context)[0]

        assert result.relevance_score == pytest.approx(0.42)

    def test_register(self) -> None:
        registry = WeightProfileRegistry()
        registry.register("semantic", WeightProfile(semantic_similarity=1.0))
        assert registry.resolve("semantic").semantic_similarity == 1.0

    def test_register_rejects_zero_weights(self) -> None:
        zeros = {name: 0.0 for name in WeightProfile().weights()}
        with pytest.raises(ValidationError):
            WeightProfileRegistry().register("empty", WeightProfile(**zeros))

    def test_custom_profiles_from_config(self) -> None:
        registry = WeightProfileRegistry(
            default_profile="mine", custom_profiles={"mine": {"semantic_similarity": 0.9}}
        )
        assert registry.resolve(None).semantic_similarity == 0.9

    def test_unknown_default_profile(self) -> None:
        with pytest.raises(ConfigurationError):
            WeightProfileRegistry(default_profile="missing")


class TestDiversityRerank:
    """No single category dominates the top of the list."""

    def _scored(self, item_id: str, relevance: float, category: str) -> ScoredMatch:
        match = make_match(item_id, relevance, categories=[category])
        return ScoredMatch(match=match, relevance_score=relevance, signals={}, confidence=0.5)

    def test_small_lists_untouched(self) -> None:
        results = [self._scored(f"m{i}", 1.0 - i * 0.1, "math") for i in range(5)]
        assert diversity_rerank(results) == results

    def test_promotes_new_categories(self) -> None:
        results = [
            self._scored("m1", 0.9, "math"),
            self._scored("m2", 0.8, "math"),
            self._scored("m3", 0.7, "math"),
            self._scored("m4", 0.6, "math"),
            self._scored("f1", 0.5, "finance"),
            self._scored("t1", 0.4, "text"),
        ]

        reranked = diversity_rerank(results)

        assert [r.item_id for r in reranked] == ["m1", "f1", "t1", "m2", "m3", "m4"]
        assert len({r.categories[0] for r in reranked[:3]}) >= 2

    def test_window_limits_promotions(self) -> None:
        results = [self._scored(f"c{i}", 1.0 - i * 0.05, f"cat{i}") for i in range(8)]
        reranked = diversity_rerank(results, threshold=5, window=2)
        assert [r.item_id for r in reranked] == [r.item_id for r in results]

    def test_scorer_applies_diversity(self, scorer: RelevanceScorer) -> None:
        matches = [make_match(f"m{i}", 0.95 - i * 0.01) for i in range(4)]
        matches.append(make_match("f1", 0.3, categories=["finance"]))
        matches.append(make_match("t1", 0.2, categories=["text"]))

        ranked = scorer.score(matches, ScoringContext(actor_id="u1"))

        assert len(ranked) == 6
        assert len({r.categories[0] for r in ranked[:3]}) >= 2

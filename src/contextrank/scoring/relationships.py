"""
Relationship graph between items.

Undirected edges of three kinds:
- co_occurrence: weighted, +1.0 per use in the same workflow, +0.3 otherwise
- complementary: items that work well together
- substitutable: items that can replace each other
"""

import threading
from enum import Enum
from typing import Dict, List, Set

from contextrank.core.exceptions import ValidationError
from contextrank.core.logging import logger

SAME_WORKFLOW_WEIGHT = 1.0
CROSS_WORKFLOW_WEIGHT = 0.3


class RelationshipKind(str, Enum):
    CO_OCCURRENCE = "co_occurrence"
    COMPLEMENTARY = "complementary"
    SUBSTITUTABLE = "substitutable"


class RelationshipGraph:
    """Symmetric item relationships behind a single lock."""

    def __init__(self) -> None:
        self._co_occurrence: Dict[str, Dict[str, float]] = {}
        self._complementary: Dict[str, Set[str]] = {}
        self._substitutable: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def record(self, a: str, b: str, kind: str, same_workflow: bool = True) -> None:
        """
        Record a relationship between two items.

        Raises:
            ValidationError: Unknown kind, empty id or a self-edge
        """
        try:
            relationship = RelationshipKind(kind)
        except ValueError as e:
            raise ValidationError(
                f"Unknown relationship kind: {kind}",
                context={"allowed": [k.value for k in RelationshipKind]},
                cause=e,
            )
        if not a or not b:
            raise ValidationError("Relationship endpoints cannot be empty")
        if a == b:
            raise ValidationError("An item cannot be related to itself", context={"item_id": a})

        with self._lock:
            if relationship == RelationshipKind.CO_OCCURRENCE:
                weight = SAME_WORKFLOW_WEIGHT if same_workflow else CROSS_WORKFLOW_WEIGHT
                for x, y in ((a, b), (b, a)):
                    edges = self._co_occurrence.setdefault(x, {})
                    edges[y] = edges.get(y, 0.0) + weight
            else:
                target = (
                    self._complementary
                    if relationship == RelationshipKind.COMPLEMENTARY
                    else self._substitutable
                )
                target.setdefault(a, set()).add(b)
                target.setdefault(b, set()).add(a)

        logger.debug("Relationship recorded", a=a, b=b, kind=relationship.value)

    def co_occurrence(self, a: str, b: str) -> float:
        with self._lock:
            return self._co_occurrence.get(a, {}).get(b, 0.0)

    def are_complementary(self, a: str, b: str) -> bool:
        with self._lock:
            return b in self._complementary.get(a, ())

    def complements(self, item_id: str) -> List[str]:
        with self._lock:
            return sorted(self._complementary.get(item_id, ()))

    def substitutes(self, item_id: str) -> List[str]:
        with self._lock:
            return sorted(self._substitutable.get(item_id, ()))

    def edge_count(self) -> int:
        with self._lock:
            co = sum(len(edges) for edges in self._co_occurrence.values())
            comp = sum(len(edges) for edges in self._complementary.values())
            sub = sum(len(edges) for edges in self._substitutable.values())
        return (co + comp + sub) // 2

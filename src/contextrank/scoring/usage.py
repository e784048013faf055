"""
Usage ledger: per-item usage statistics and per-actor contextual history.

Records are created lazily on the first recorded use and never deleted;
satisfaction scores age out of a bounded window.
"""

import threading
from collections import Counter, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

from contextrank.core.exceptions import ValidationError
from contextrank.core.logging import logger
from contextrank.models.scoring import context_key_for

SATISFACTION_WINDOW = 100
RELIABILITY_MIN_USES = 10
PREDICTED_SUCCESSORS = 3


@dataclass(frozen=True)
class UsageSnapshot:
    """Consistent read-only view of a UsageRecord."""

    total_uses: int
    successful_uses: int
    average_latency_ms: float
    error_types: int
    actor_count: int
    actor_uses: Dict[str, int]
    success_rate: float
    recent_satisfaction: float
    reliability: float
    last_satisfaction: Tuple[float, ...]

    def recent_mean(self, n: int = 5) -> Optional[float]:
        """Mean of the last n satisfaction scores, None when there are none."""
        window = self.last_satisfaction[-n:]
        if not window:
            return None
        return sum(window) / len(window)


class UsageRecord:
    """Usage statistics of one item."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        self.total_uses = 0
        self.successful_uses = 0
        self.average_latency_ms = 0.0
        self.error_counts: Counter = Counter()
        self.actor_uses: Counter = Counter()
        self.satisfaction: Deque[float] = deque(maxlen=SATISFACTION_WINDOW)
        self._lock = threading.Lock()

    def record(
        self,
        actor_id: str,
        success: bool,
        latency_ms: float,
        error: Optional[str],
        satisfaction: float,
    ) -> None:
        with self._lock:
            self.total_uses += 1
            if success:
                self.successful_uses += 1
            elif error is not None:
                self.error_counts[error] += 1

            # Running average
            self.average_latency_ms += (latency_ms - self.average_latency_ms) / self.total_uses
            self.actor_uses[actor_id] += 1
            self.satisfaction.append(satisfaction)

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            total = self.total_uses
            success_rate = self.successful_uses / total if total > 0 else 0.5
            recent = (
                sum(self.satisfaction) / len(self.satisfaction) if self.satisfaction else 0.7
            )
            reliability = _reliability(
                total, success_rate, len(self.error_counts), self.average_latency_ms
            )
            return UsageSnapshot(
                total_uses=total,
                successful_uses=self.successful_uses,
                average_latency_ms=self.average_latency_ms,
                error_types=len(self.error_counts),
                actor_count=len(self.actor_uses),
                actor_uses=dict(self.actor_uses),
                success_rate=success_rate,
                recent_satisfaction=recent,
                reliability=reliability,
                last_satisfaction=tuple(self.satisfaction),
            )


def _reliability(total: int, success_rate: float, error_types: int, latency_ms: float) -> float:
    """0.5 until enough uses, then success, error diversity and latency blended."""
    if total < RELIABILITY_MIN_USES:
        return 0.5
    error_diversity = 1.0 - error_types * 0.1
    if latency_ms < 1000:
        performance = 1.0
    elif latency_ms < 5000:
        performance = 0.8
    else:
        performance = 0.5
    score = success_rate * 0.5 + error_diversity * 0.3 + performance * 0.2
    return min(1.0, max(0.0, score))


class ActorHistory:
    """Session sequences and context frequencies of one actor."""

    def __init__(self) -> None:
        self.sessions: Dict[str, List[Tuple[str, bool]]] = {}
        self.context_frequency: Dict[str, Counter] = {}
        self.item_uses: Counter = Counter()

    def record(self, session_id: str, context_key: str, item_id: str, success: bool) -> None:
        self.sessions.setdefault(session_id, []).append((item_id, success))
        self.context_frequency.setdefault(context_key, Counter())[item_id] += 1
        self.item_uses[item_id] += 1

    def context_relevance(self, context_key: str, item_id: str) -> float:
        """Share of this item among uses under the context key (0.5 without history)."""
        frequency = self.context_frequency.get(context_key)
        if frequency is None:
            return 0.5
        total = sum(frequency.values())
        return frequency.get(item_id, 0) / total if total > 0 else 0.0

    def predicted_successors(self, session_id: str, last_item: str) -> List[str]:
        """Items that most often followed a successful use of last_item in the session."""
        sequence = self.sessions.get(session_id)
        if not sequence:
            return []

        followers: Counter = Counter()
        for (item_id, success), (next_id, _) in zip(sequence, sequence[1:]):
            if item_id == last_item and success:
                followers[next_id] += 1

        ranked = sorted(followers.items(), key=lambda kv: (-kv[1], kv[0]))
        return [item_id for item_id, _ in ranked[:PREDICTED_SUCCESSORS]]


class UsageLedger:
    """
    Thread-safe ledger of usage outcomes.

    The ledger lock protects record and history creation; each UsageRecord
    has its own lock for updates.
    """

    DEFAULT_SESSION = "default"

    def __init__(self) -> None:
        self._records: Dict[str, UsageRecord] = {}
        self._histories: Dict[str, ActorHistory] = {}
        self._lock = threading.Lock()
        self._history_lock = threading.Lock()

    def record_usage(
        self,
        item_id: str,
        actor_id: str,
        success: bool,
        latency_ms: float,
        error: Optional[str] = None,
        satisfaction: Optional[float] = None,
        session_id: Optional[str] = None,
        state: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record one use of an item.

        satisfaction defaults to 1.0 for a success and 0.0 for a failure.

        Raises:
            ValidationError: Empty ids, negative latency or satisfaction
                outside [0, 1]
        """
        if not item_id or not actor_id:
            raise ValidationError("item_id and actor_id are required")
        if latency_ms < 0:
            raise ValidationError("latency_ms cannot be negative", context={"value": latency_ms})
        if satisfaction is None:
            satisfaction = 1.0 if success else 0.0
        if not 0.0 <= satisfaction <= 1.0:
            raise ValidationError(
                "satisfaction must be in [0, 1]", context={"value": satisfaction}
            )

        self._record_for(item_id).record(actor_id, success, float(latency_ms), error, satisfaction)

        with self._history_lock:
            history = self._histories.setdefault(actor_id, ActorHistory())
            history.record(
                session_id or self.DEFAULT_SESSION, context_key_for(state), item_id, success
            )

        logger.debug("Usage recorded", item_id=item_id, actor=actor_id, success=success)

    def _record_for(self, item_id: str) -> UsageRecord:
        with self._lock:
            record = self._records.get(item_id)
            if record is None:
                record = UsageRecord(item_id)
                self._records[item_id] = record
            return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def stats(self, item_id: str) -> Optional[UsageSnapshot]:
        with self._lock:
            record = self._records.get(item_id)
        return record.snapshot() if record is not None else None

    def context_relevance(self, actor_id: str, context_key: str, item_id: str) -> Optional[float]:
        """None when the actor has no history at all."""
        with self._history_lock:
            history = self._histories.get(actor_id)
            if history is None:
                return None
            return history.context_relevance(context_key, item_id)

    def predicted_successors(
        self, actor_id: str, session_id: Optional[str], last_item: str
    ) -> List[str]:
        with self._history_lock:
            history = self._histories.get(actor_id)
            if history is None:
                return []
            return history.predicted_successors(session_id or self.DEFAULT_SESSION, last_item)

    def actor_usage(self, actor_id: str, item_id: str) -> Tuple[int, int]:
        """(uses of this item by the actor, uses of all items by the actor)."""
        with self._history_lock:
            history = self._histories.get(actor_id)
            if history is None:
                return 0, 0
            return history.item_uses.get(item_id, 0), sum(history.item_uses.values())

    def item_count(self) -> int:
        with self._lock:
            return len(self._records)

    def total_uses(self) -> int:
        with self._lock:
            records = list(self._records.values())
        return sum(record.snapshot().total_uses for record in records)

"""
Experience-driven strategy learning for agents.

AgentLearning keeps one Strategy per (task type, action) pair and picks
actions epsilon-greedily. Experiences and strategies are written to a
StrategyStore so they survive restarts when a durable store is used.

AdaptiveBehavior watches a sliding window of performance scores and
suggests exploration adjustments.
"""

import math
import random
from typing import Any, Dict, List, Optional

from cogniverse.logging_utils import log_deterministic, log_info
from cogniverse.persistence import StrategyStore
from cogniverse.schemas import (
    AdjustmentSuggestion,
    LearningExperience,
    LearningStatistics,
    MemoryEntry,
    MemoryQuery,
    Outcome,
    Strategy,
    utc_now,
)

REWARDS: Dict[str, float] = {"success": 1.0, "partial": 0.5, "failure": -1.0}
MAX_CONFIDENCE = 0.95


def strategy_key(task_type: str, action: str) -> str:
    return f"{task_type}_{action}"


def context_match(pattern: Dict[str, Any], context: Dict[str, Any]) -> float:
    """Fraction of pattern keys whose value equals the context's (1.0 for empty patterns)."""
    if not pattern:
        return 1.0
    matches = sum(1 for key, value in pattern.items() if context.get(key) == value)
    return matches / len(pattern)


class AgentLearning:
    """Per-agent strategy learner."""

    def __init__(
        self,
        agent_id: str,
        store: StrategyStore,
        learning_rate: float = 0.1,
        exploration_rate: float = 0.2,
        rng: Optional[random.Random] = None,
    ):
        self.agent_id = agent_id
        self.store = store
        self.learning_rate = learning_rate
        self.exploration_rate = exploration_rate
        self.rng = rng or random.Random()
        self.experiences: List[LearningExperience] = []
        self.strategies: Dict[str, Strategy] = {}

    async def record_experience(
        self,
        task_type: str,
        action: str,
        outcome: Outcome,
        context: Optional[Dict[str, Any]] = None,
    ) -> LearningExperience:
        reward = REWARDS[outcome]
        experience = LearningExperience(
            agent_id=self.agent_id,
            task_type=task_type,
            action=action,
            outcome=outcome,
            reward=reward,
            context=context or {},
        )
        self.experiences.append(experience)

        # High reward or high penalty = high importance
        await self.store.store(
            MemoryEntry(
                agent_id=self.agent_id,
                type="experience",
                content=experience.model_dump(mode="json"),
                importance=abs(reward),
            )
        )
        await self._update_strategy(experience)

        log_deterministic(f"[Learning] {self.agent_id} recorded {outcome} for {task_type}/{action}")
        return experience

    async def _update_strategy(self, experience: LearningExperience) -> Strategy:
        key = strategy_key(experience.task_type, experience.action)
        strategy = self.strategies.get(key)
        success = 1.0 if experience.outcome == "success" else 0.0

        if strategy is None:
            strategy = Strategy(
                task_type=experience.task_type,
                pattern=dict(experience.context),
                action=experience.action,
                confidence=0.5,
                success_rate=success,
                use_count=1,
            )
            self.strategies[key] = strategy
        else:
            strategy.success_rate = (
                (1 - self.learning_rate) * strategy.success_rate + self.learning_rate * success
            )
            strategy.confidence = min(
                MAX_CONFIDENCE,
                strategy.success_rate * math.log(strategy.use_count + 1) * 0.2,
            )
            strategy.use_count += 1
            strategy.last_used = utc_now()

        # One skill entry per strategy; storing the same id again replaces it
        await self.store.store(
            MemoryEntry(
                id=strategy.id,
                agent_id=self.agent_id,
                type="skill",
                content=strategy.model_dump(mode="json"),
                importance=strategy.confidence,
                access_count=strategy.use_count,
                last_accessed=strategy.last_used,
            )
        )
        return strategy

    def select_action(
        self,
        task_type: str,
        context: Dict[str, Any],
        available_actions: List[str],
    ) -> str:
        """Epsilon-greedy choice among ``available_actions``.

        Exploits the action with the best success_rate * confidence * context
        match; actions with no strategy are only picked by exploration or when
        nothing is known (first action).
        """
        if not available_actions:
            raise ValueError("available_actions must not be empty")

        if self.rng.random() < self.exploration_rate:
            return self.rng.choice(available_actions)

        best_action = available_actions[0]
        best_score = -math.inf
        for action in available_actions:
            strategy = self.strategies.get(strategy_key(task_type, action))
            if strategy is None:
                continue
            score = (
                strategy.success_rate
                * strategy.confidence
                * context_match(strategy.pattern, context)
            )
            if score > best_score:
                best_score = score
                best_action = action
        return best_action

    async def load_strategies(self) -> int:
        """Restore strategies from the store. Returns the number loaded."""
        entries = await self.store.query(MemoryQuery(agent_id=self.agent_id, type="skill"))
        for entry in entries:
            strategy = Strategy.model_validate(entry.content)
            self.strategies[strategy_key(strategy.task_type, strategy.action)] = strategy

        log_info(f"[Learning] Loaded {len(self.strategies)} strategies for {self.agent_id}")
        return len(self.strategies)

    def get_statistics(self) -> LearningStatistics:
        strategies = list(self.strategies.values())
        average = (
            sum(s.success_rate for s in strategies) / len(strategies) if strategies else 0.0
        )
        return LearningStatistics(
            total_experiences=len(self.experiences),
            total_strategies=len(strategies),
            average_success_rate=average,
            exploration_rate=self.exploration_rate,
        )

    def get_top_strategies(self, limit: int = 10) -> List[Strategy]:
        ranked = sorted(
            self.strategies.values(),
            key=lambda s: s.success_rate * s.confidence,
            reverse=True,
        )
        return ranked[:limit]

    def set_exploration_rate(self, rate: float) -> None:
        self.exploration_rate = max(0.0, min(1.0, rate))

    def reset(self) -> None:
        self.experiences.clear()
        self.strategies.clear()


class AdaptiveBehavior:
    """Sliding-window performance tracker."""

    def __init__(self, window_size: int = 50):
        self.window_size = window_size
        self.performance: List[float] = []

    def record_performance(self, metric: float) -> None:
        self.performance.append(metric)
        if len(self.performance) > self.window_size:
            self.performance.pop(0)

    def get_average_performance(self) -> float:
        if not self.performance:
            return 0.0
        return sum(self.performance) / len(self.performance)

    def is_improving(self) -> bool:
        # Too little data to judge: assume improvement
        if len(self.performance) < 10:
            return True

        middle = len(self.performance) // 2
        older, recent = self.performance[:middle], self.performance[middle:]
        return sum(recent) / len(recent) > sum(older) / len(older)

    def suggest_adjustments(self) -> AdjustmentSuggestion:
        average = self.get_average_performance()
        improving = self.is_improving()

        if average < 0.3 and not improving:
            return AdjustmentSuggestion(
                increase_exploration=True,
                message="Low performance - suggest increasing exploration",
            )
        if average > 0.7 and improving:
            return AdjustmentSuggestion(
                decrease_exploration=True,
                message="Good performance - suggest decreasing exploration",
            )
        return AdjustmentSuggestion(message="Performance stable - no adjustments needed")

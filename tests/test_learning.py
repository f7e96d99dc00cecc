"""Tests for strategy learning and adaptive behaviour."""

import math
import random

import pytest

from cogniverse.learning import AdaptiveBehavior, AgentLearning, context_match
from cogniverse.persistence import InMemoryStrategyStore
from cogniverse.schemas import MemoryQuery


@pytest.mark.asyncio
async def test_first_experience_creates_strategy():
    store = InMemoryStrategyStore()
    learning = AgentLearning("alpha", store)

    experience = await learning.record_experience("planner", "decompose", "success", {"size": "big"})

    assert experience.reward == 1.0
    strategy = learning.strategies["planner_decompose"]
    assert strategy.success_rate == 1.0
    assert strategy.confidence == 0.5
    assert strategy.use_count == 1
    assert strategy.pattern == {"size": "big"}

    experiences = await store.query(MemoryQuery(agent_id="alpha", type="experience"))
    assert experiences[0].importance == 1.0


@pytest.mark.asyncio
async def test_repeated_experience_updates_strategy():
    store = InMemoryStrategyStore()
    learning = AgentLearning("alpha", store, learning_rate=0.1)

    await learning.record_experience("planner", "decompose", "success")
    await learning.record_experience("planner", "decompose", "failure")

    strategy = learning.strategies["planner_decompose"]
    assert strategy.success_rate == pytest.approx(0.9)
    assert strategy.confidence == pytest.approx(min(0.95, 0.9 * math.log(2) * 0.2))
    assert strategy.use_count == 2

    # One skill record per strategy, replaced on update
    skills = await store.query(MemoryQuery(agent_id="alpha", type="skill"))
    assert len(skills) == 1
    assert skills[0].content["use_count"] == 2


@pytest.mark.asyncio
async def test_partial_outcome_reward():
    learning = AgentLearning("alpha", InMemoryStrategyStore())
    experience = await learning.record_experience("reasoner", "chain", "partial")
    assert experience.reward == 0.5
    assert learning.strategies["reasoner_chain"].success_rate == 0.0


@pytest.mark.asyncio
async def test_select_action_exploits_best_strategy():
    learning = AgentLearning("alpha", InMemoryStrategyStore(), exploration_rate=0.0)
    for _ in range(3):
        await learning.record_experience("t", "good", "success")
    await learning.record_experience("t", "bad", "failure")

    assert learning.select_action("t", {}, ["bad", "good", "unknown"]) == "good"
    # Nothing known: first action
    assert learning.select_action("other", {}, ["x", "y"]) == "x"


@pytest.mark.asyncio
async def test_select_action_explores():
    learning = AgentLearning(
        "alpha", InMemoryStrategyStore(), exploration_rate=1.0, rng=random.Random(0)
    )
    await learning.record_experience("t", "good", "success")
    choices = {learning.select_action("t", {}, ["good", "other"]) for _ in range(50)}
    assert choices == {"good", "other"}


def test_select_action_requires_actions():
    learning = AgentLearning("alpha", InMemoryStrategyStore())
    with pytest.raises(ValueError):
        learning.select_action("t", {}, [])


def test_context_match():
    assert context_match({}, {"a": 1}) == 1.0
    assert context_match({"a": 1, "b": 2}, {"a": 1, "b": 3}) == 0.5


@pytest.mark.asyncio
async def test_strategies_reload_from_store():
    store = InMemoryStrategyStore()
    first = AgentLearning("alpha", store)
    await first.record_experience("t", "act", "success")
    await first.record_experience("t", "act", "success")

    second = AgentLearning("alpha", store)
    assert await second.load_strategies() == 1
    assert second.strategies["t_act"].use_count == 2


@pytest.mark.asyncio
async def test_statistics_and_reset():
    learning = AgentLearning("alpha", InMemoryStrategyStore())
    await learning.record_experience("t", "a", "success")
    await learning.record_experience("t", "b", "failure")

    stats = learning.get_statistics()
    assert stats.total_experiences == 2
    assert stats.total_strategies == 2
    assert stats.average_success_rate == pytest.approx(0.5)
    assert learning.get_top_strategies(1)[0].action == "a"

    learning.set_exploration_rate(5)
    assert learning.exploration_rate == 1.0
    learning.set_exploration_rate(-1)
    assert learning.exploration_rate == 0.0

    learning.reset()
    assert learning.get_statistics().total_strategies == 0


def test_adaptive_behavior_window_and_average():
    behavior = AdaptiveBehavior(window_size=3)
    for value in (0.0, 1.0, 1.0, 1.0):
        behavior.record_performance(value)
    assert behavior.performance == [1.0, 1.0, 1.0]
    assert behavior.get_average_performance() == 1.0


def test_adaptive_behavior_suggestions():
    behavior = AdaptiveBehavior()
    assert behavior.is_improving()
    assert behavior.suggest_adjustments().message.startswith("Performance stable")

    for value in [0.3] * 5 + [0.1] * 5:
        behavior.record_performance(value)
    assert not behavior.is_improving()
    assert behavior.suggest_adjustments().increase_exploration

    rising = AdaptiveBehavior()
    for value in [0.7] * 5 + [0.95] * 5:
        rising.record_performance(value)
    assert rising.is_improving()
    assert rising.suggest_adjustments().decrease_exploration

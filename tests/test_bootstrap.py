"""Tests for configuration and the default system wiring."""

import json
import random

import pytest

from cogniverse.bootstrap import build_system
from cogniverse.config import Config
from cogniverse.persistence import InMemoryStrategyStore, JsonStrategyStore
from cogniverse.schemas import AgentRole, AgentStatus, MemoryQuery, TaskStatus


class SmallConfig(Config):
    MOSES_POPULATION_SIZE = 10
    MOSES_ELITISM_COUNT = 2
    MOSES_MAX_GENERATIONS = 2
    STRATEGY_STORE_PATH = None


def test_default_config_is_valid():
    Config.validate()
    text = Config.display()
    assert text.startswith("Cogniverse Configuration:")
    assert "Strategy store:" in text


@pytest.mark.parametrize(
    "overrides",
    [
        {"ECAN_SPREAD_RATE": 1.5},
        {"EXPLORATION_RATE": -0.1},
        {"ECAN_MAX_STI": 0},
        {"MOSES_ELITISM_COUNT": 11},
        {"REQUEST_TIMEOUT_SECONDS": 0},
    ],
)
def test_invalid_config_is_rejected(overrides):
    broken = type("BrokenConfig", (SmallConfig,), overrides)
    with pytest.raises(ValueError):
        broken.validate()


@pytest.mark.asyncio
async def test_build_system_registers_every_role():
    system = await build_system(SmallConfig, rng=random.Random(1))

    agents = system.orchestrator.get_agents()
    assert {info.id for info in agents} == {role.value for role in AgentRole}
    assert all(info.status == AgentStatus.IDLE for info in agents)
    assert isinstance(system.store, InMemoryStrategyStore)
    assert set(system.learners) == set(AgentRole)

    await system.close()
    assert system.orchestrator.get_agents() == []


@pytest.mark.asyncio
async def test_request_goes_through_planner_and_is_learned():
    system = await build_system(SmallConfig, rng=random.Random(1))

    plan = json.loads(await system.orchestrator.process_request("Survey the garden"))
    assert plan["original_task"] == "Survey the garden"

    await system.orchestrator.join()
    learner = system.learners[AgentRole.PLANNER]
    assert learner.get_statistics().total_experiences == 1
    await system.close()


@pytest.mark.asyncio
async def test_optimizer_task_through_system():
    system = await build_system(SmallConfig, rng=random.Random(3))

    task = await system.orchestrator.create_task("fit y = x^2 + x", capability="program-evolution")
    finished = await system.orchestrator.wait_for_task(task.id, timeout=5)

    assert finished.status == TaskStatus.COMPLETED
    report = json.loads(finished.result)
    assert 0.0 <= report["best_fitness"] <= 1.0
    await system.close()


@pytest.mark.asyncio
async def test_strategies_survive_restart_with_json_store(tmp_path):
    class PersistentConfig(SmallConfig):
        STRATEGY_STORE_PATH = str(tmp_path / "strategies")

    system = await build_system(PersistentConfig, rng=random.Random(1))
    assert isinstance(system.store, JsonStrategyStore)
    await system.orchestrator.process_request("Plan a trip")
    await system.close()

    assert (tmp_path / "strategies" / "planner.jsonl").exists()

    restarted = await build_system(PersistentConfig, rng=random.Random(1))
    learner = restarted.learners[AgentRole.PLANNER]
    assert learner.strategies["planner_decompose"].use_count == 1
    skills = await restarted.store.query(MemoryQuery(agent_id="planner", type="skill"))
    assert len(skills) == 1
    await restarted.close()

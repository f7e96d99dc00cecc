"""Composition root: builds the default system from configuration.

Nothing in the library reads ``Config`` except this module. Tests and
applications that need different wiring construct the pieces directly.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Type

from cogniverse.agents import Agent, build_agent
from cogniverse.agents.roles import DEFAULT_REGRESSION_SAMPLES, default_program_generator
from cogniverse.collaborators import (
    InMemoryKnowledgeStore,
    KnowledgeStoreClient,
    SymbolicTranslator,
    Translator,
)
from cogniverse.config import Config
from cogniverse.learning import AgentLearning
from cogniverse.logging_utils import log_success
from cogniverse.orchestrator import Orchestrator
from cogniverse.persistence import InMemoryStrategyStore, JsonStrategyStore, StrategyStore
from cogniverse.reasoning import (
    ECANEngine,
    MOSESEngine,
    MosesConfig,
    PLNReasoner,
    make_regression_fitness,
)
from cogniverse.schemas import AgentRole


@dataclass
class CogniverseSystem:
    """Everything ``build_system`` wires together."""

    orchestrator: Orchestrator
    agents: Dict[AgentRole, Agent]
    reasoner: PLNReasoner
    ecan: ECANEngine
    moses: MOSESEngine
    store: StrategyStore
    learners: Dict[AgentRole, AgentLearning] = field(default_factory=dict)

    async def close(self) -> None:
        await self.orchestrator.join()
        self.orchestrator.shutdown()
        await self.store.close()


async def build_system(
    config: Type[Config] = Config,
    *,
    translator: Optional[Translator] = None,
    knowledge_client: Optional[KnowledgeStoreClient] = None,
    store: Optional[StrategyStore] = None,
    rng: Optional[random.Random] = None,
) -> CogniverseSystem:
    """Create an orchestrator with one agent per role, all registered.

    Every agent learns from its task outcomes through a shared strategy
    store (JSONL files when ``STRATEGY_STORE_PATH`` is set, else memory).
    """
    config.validate()
    rng = rng or random.Random()

    if store is None:
        if config.STRATEGY_STORE_PATH:
            store = JsonStrategyStore(Path(config.STRATEGY_STORE_PATH))
        else:
            store = InMemoryStrategyStore()
    await store.initialize()

    orchestrator = Orchestrator(
        request_timeout=config.REQUEST_TIMEOUT_SECONDS,
        history_limit=config.MESSAGE_HISTORY_LIMIT,
    )
    reasoner = PLNReasoner(max_iterations=config.PLN_MAX_ITERATIONS)
    ecan = ECANEngine(
        spread_rate=config.ECAN_SPREAD_RATE,
        decay_rate=config.ECAN_DECAY_RATE,
        rent_rate=config.ECAN_RENT_RATE,
        max_sti=config.ECAN_MAX_STI,
    )
    moses = MOSESEngine(
        make_regression_fitness(DEFAULT_REGRESSION_SAMPLES),
        MosesConfig(
            population_size=config.MOSES_POPULATION_SIZE,
            max_generations=config.MOSES_MAX_GENERATIONS,
            mutation_rate=config.MOSES_MUTATION_RATE,
            crossover_rate=config.MOSES_CROSSOVER_RATE,
            elitism_count=config.MOSES_ELITISM_COUNT,
            tournament_size=config.MOSES_TOURNAMENT_SIZE,
        ),
        rng=rng,
    )

    collaborators = {
        AgentRole.TRANSLATOR: {"translator": translator or SymbolicTranslator()},
        AgentRole.REASONER: {"reasoner": reasoner, "ecan": ecan},
        AgentRole.KNOWLEDGE_MANAGER: {
            "knowledge_client": knowledge_client or InMemoryKnowledgeStore()
        },
        AgentRole.PLANNER: {},
        AgentRole.OPTIMIZER: {
            "moses": moses,
            "program_generator": default_program_generator(rng),
        },
    }

    agents: Dict[AgentRole, Agent] = {}
    learners: Dict[AgentRole, AgentLearning] = {}
    for role in AgentRole:
        # Stable ids so learned strategies reload across restarts
        agent = build_agent(role, agent_id=role.value, **collaborators[role])
        learning = AgentLearning(
            agent.id,
            store,
            exploration_rate=config.EXPLORATION_RATE,
            rng=rng,
        )
        await learning.load_strategies()
        agent.learning = learning
        orchestrator.register_agent(agent)
        agents[role] = agent
        learners[role] = learning

    log_success(f"Cogniverse system ready with {len(agents)} agents")
    return CogniverseSystem(
        orchestrator=orchestrator,
        agents=agents,
        reasoner=reasoner,
        ecan=ecan,
        moses=moses,
        store=store,
        learners=learners,
    )

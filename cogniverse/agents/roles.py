"""Role catalogue and agent factory.

``build_agent`` dispatches on the closed ``AgentRole`` enum to pick the
default name, capability set and handler. Collaborators and engines not
supplied are created with their defaults.
"""

from __future__ import annotations

import random
from typing import Callable, Dict, List, Optional

from cogniverse.collaborators import (
    InMemoryKnowledgeStore,
    KnowledgeStoreClient,
    SymbolicTranslator,
    Translator,
)
from cogniverse.learning import AgentLearning
from cogniverse.reasoning.ecan import ECANEngine
from cogniverse.reasoning.moses import MOSESEngine, ProgramBuilder, make_regression_fitness
from cogniverse.reasoning.pln import PLNReasoner
from cogniverse.schemas import AgentRole, ProgramNode

from .agent import Agent, RoleHandler
from .handlers import (
    KnowledgeHandler,
    OptimizationHandler,
    PlanningHandler,
    ReasoningHandler,
    TranslationHandler,
)

ROLE_CAPABILITIES: Dict[AgentRole, List[str]] = {
    AgentRole.TRANSLATOR: [
        "nl-to-atomese",
        "atomese-to-nl",
        "nl-to-metta",
        "metta-to-nl",
        "atomese-to-metta",
        "metta-to-atomese",
    ],
    AgentRole.REASONER: [
        "logical-inference",
        "pattern-matching",
        "deduction",
        "induction",
    ],
    AgentRole.KNOWLEDGE_MANAGER: [
        "query-atomspace",
        "add-knowledge",
        "update-knowledge",
        "search-knowledge",
    ],
    AgentRole.PLANNER: [
        "task-decomposition",
        "plan-creation",
        "goal-analysis",
        "dependency-resolution",
    ],
    AgentRole.OPTIMIZER: [
        "program-evolution",
        "program-optimization",
        "symbolic-regression",
    ],
}

ROLE_NAMES: Dict[AgentRole, str] = {
    AgentRole.TRANSLATOR: "TranslationAgent",
    AgentRole.REASONER: "ReasoningAgent",
    AgentRole.KNOWLEDGE_MANAGER: "KnowledgeAgent",
    AgentRole.PLANNER: "PlanningAgent",
    AgentRole.OPTIMIZER: "OptimizationAgent",
}

# y = x^2 + x on a handful of points; the default optimizer target
DEFAULT_REGRESSION_SAMPLES = [({"x": float(x)}, float(x * x + x)) for x in range(-3, 4)]


def default_program_generator(
    rng: Optional[random.Random] = None, max_depth: int = 3
) -> Callable[[], ProgramNode]:
    rng = rng or random.Random()
    return lambda: ProgramBuilder.random_program(max_depth, rng, ("x",))


def build_handler(
    role: AgentRole,
    *,
    translator: Optional[Translator] = None,
    knowledge_client: Optional[KnowledgeStoreClient] = None,
    reasoner: Optional[PLNReasoner] = None,
    ecan: Optional[ECANEngine] = None,
    moses: Optional[MOSESEngine] = None,
    program_generator: Optional[Callable[[], ProgramNode]] = None,
) -> RoleHandler:
    if role == AgentRole.TRANSLATOR:
        return TranslationHandler(translator or SymbolicTranslator())
    if role == AgentRole.REASONER:
        return ReasoningHandler(reasoner or PLNReasoner(), ecan or ECANEngine())
    if role == AgentRole.KNOWLEDGE_MANAGER:
        return KnowledgeHandler(knowledge_client or InMemoryKnowledgeStore())
    if role == AgentRole.PLANNER:
        return PlanningHandler()
    if role == AgentRole.OPTIMIZER:
        engine = moses or MOSESEngine(make_regression_fitness(DEFAULT_REGRESSION_SAMPLES))
        return OptimizationHandler(engine, program_generator or default_program_generator(engine.rng))
    raise ValueError(f"Unknown agent role: {role!r}")


def build_agent(
    role: AgentRole,
    *,
    name: Optional[str] = None,
    capabilities: Optional[List[str]] = None,
    learning: Optional[AgentLearning] = None,
    agent_id: Optional[str] = None,
    **collaborators,
) -> Agent:
    """Create an Agent for ``role`` with its default name, capabilities and handler.

    Keyword collaborators (``translator``, ``knowledge_client``, ``reasoner``,
    ``ecan``, ``moses``, ``program_generator``) are passed to the handler.
    """
    role = AgentRole(role)
    return Agent(
        name=name or ROLE_NAMES[role],
        role=role,
        capabilities=capabilities if capabilities is not None else ROLE_CAPABILITIES[role],
        handler=build_handler(role, **collaborators),
        learning=learning,
        agent_id=agent_id,
    )

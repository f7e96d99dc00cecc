"""
Cogniverse - multi-agent task orchestration over symbolic reasoning engines.

An orchestrator routes tasks and messages between capability-tagged agents.
Agents delegate to three reasoning strategies:

- PLN: probabilistic forward chaining with a truth-value algebra
- ECAN: economic attention allocation over a knowledge graph
- MOSES: evolutionary program search

No global state: build a system with ``build_system`` or wire the pieces
yourself. Translation and knowledge-store services are injected.
"""

__version__ = "0.1.0"

# Orchestration
from .orchestrator import (
    Orchestrator,
    TaskNotFoundError,
    AgentNotFoundError,
    InvalidTaskTransitionError,
    TaskDependencyError,
    TaskFailedError,
    TaskTimeoutError,
)
from .agents import Agent, RoleHandler, build_agent, ROLE_CAPABILITIES, MissingMetadataError
from .bootstrap import CogniverseSystem, build_system

# Reasoning engines
from .reasoning import (
    PLNForwardChainer,
    PLNReasoner,
    ECANEngine,
    ImportanceDiffusion,
    MOSESEngine,
    MosesConfig,
    ProgramBuilder,
    evaluate_program,
)

# Collaborators, persistence and learning
from .collaborators import (
    Translator,
    KnowledgeStoreClient,
    SymbolicTranslator,
    InMemoryKnowledgeStore,
    TranslationUnavailableError,
)
from .persistence import StrategyStore, InMemoryStrategyStore, JsonStrategyStore
from .learning import AgentLearning, AdaptiveBehavior

# Core schemas
from .schemas import (
    AgentStatus,
    AgentRole,
    MessageType,
    TaskStatus,
    AtomType,
    Format,
    TruthValue,
    KnowledgeNode,
    AttentionValue,
    ProgramNode,
    Candidate,
    AgentInfo,
    Task,
    AgentMessage,
    OrchestrationState,
    TaskMetadata,
    TranslationMetadata,
    KnowledgeMetadata,
    ReasoningMetadata,
    EvolutionMetadata,
    CommandResponse,
    MemoryEntry,
    MemoryQuery,
)

__all__ = [
    "Orchestrator",
    "TaskNotFoundError",
    "AgentNotFoundError",
    "InvalidTaskTransitionError",
    "TaskDependencyError",
    "TaskFailedError",
    "TaskTimeoutError",
    "Agent",
    "RoleHandler",
    "build_agent",
    "ROLE_CAPABILITIES",
    "MissingMetadataError",
    "CogniverseSystem",
    "build_system",
    "PLNForwardChainer",
    "PLNReasoner",
    "ECANEngine",
    "ImportanceDiffusion",
    "MOSESEngine",
    "MosesConfig",
    "ProgramBuilder",
    "evaluate_program",
    "Translator",
    "KnowledgeStoreClient",
    "SymbolicTranslator",
    "InMemoryKnowledgeStore",
    "TranslationUnavailableError",
    "StrategyStore",
    "InMemoryStrategyStore",
    "JsonStrategyStore",
    "AgentLearning",
    "AdaptiveBehavior",
    "AgentStatus",
    "AgentRole",
    "MessageType",
    "TaskStatus",
    "AtomType",
    "Format",
    "TruthValue",
    "KnowledgeNode",
    "AttentionValue",
    "ProgramNode",
    "Candidate",
    "AgentInfo",
    "Task",
    "AgentMessage",
    "OrchestrationState",
    "TaskMetadata",
    "TranslationMetadata",
    "KnowledgeMetadata",
    "ReasoningMetadata",
    "EvolutionMetadata",
    "CommandResponse",
    "MemoryEntry",
    "MemoryQuery",
]

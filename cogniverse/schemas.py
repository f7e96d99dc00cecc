"""
Pydantic schemas for the Cogniverse orchestration core.

All data structures exchanged between the orchestrator, agents, reasoning
engines and injected collaborators are defined here.

Design Philosophy:
- Stable snake_case field names (consumers render them directly)
- Message metadata is a tagged union keyed by ``kind`` instead of an open dict,
  so malformed metadata fails validation at the boundary
- TruthValue clamps on construction; the algebra never clamps itself
- KnowledgeNode validates the node/link shape invariant on construction
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def new_id() -> str:
    """Return a fresh identifier for agents, tasks, messages and candidates."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enumerations
# ============================================================================


class AgentStatus(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    ERROR = "error"
    OFFLINE = "offline"


class AgentRole(str, Enum):
    """Closed set of agent roles. Behaviour is dispatched on this tag."""

    TRANSLATOR = "translator"
    REASONER = "reasoner"
    KNOWLEDGE_MANAGER = "knowledge-manager"
    PLANNER = "planner"
    OPTIMIZER = "optimizer"


class MessageType(str, Enum):
    TASK = "task"
    RESPONSE = "response"
    QUERY = "query"
    BROADCAST = "broadcast"
    COMMAND = "command"


class TaskStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class AtomType(str, Enum):
    CONCEPT_NODE = "ConceptNode"
    PREDICATE_NODE = "PredicateNode"
    VARIABLE_NODE = "VariableNode"
    LIST_LINK = "ListLink"
    INHERITANCE_LINK = "InheritanceLink"
    SIMILARITY_LINK = "SimilarityLink"
    EVALUATION_LINK = "EvaluationLink"
    IMPLICATION_LINK = "ImplicationLink"
    AND_LINK = "AndLink"
    OR_LINK = "OrLink"
    NOT_LINK = "NotLink"

    @property
    def is_link(self) -> bool:
        return self.value.endswith("Link")


class Format(str, Enum):
    """Representation formats understood by translators."""

    NATURAL_LANGUAGE = "natural_language"
    ATOMESE = "atomese"
    METTA = "metta"
    SCHEME = "scheme"


# ============================================================================
# Knowledge Representation
# ============================================================================


class TruthValue(BaseModel):
    """Probabilistic truth value: degree of truth plus amount of evidence.

    Immutable. Out-of-range inputs are clamped to [0, 1]; NaN becomes 0.
    """

    model_config = ConfigDict(frozen=True)

    strength: float = Field(..., description="Degree of truth in [0, 1]")
    confidence: float = Field(..., description="Amount of supporting evidence in [0, 1]")

    @field_validator("strength", "confidence", mode="before")
    @classmethod
    def _clamp_unit_interval(cls, value: Any) -> float:
        value = float(value)
        if math.isnan(value):
            return 0.0
        return min(1.0, max(0.0, value))


NodeValue = Union[bool, int, float, str]


class KnowledgeNode(BaseModel):
    """Typed node or link in the knowledge graph.

    Node types (concept/predicate/variable) carry a name and no children.
    Link types carry at least one child. Both may carry a TruthValue.
    """

    type: AtomType = Field(..., description="Node or link type")
    name: Optional[str] = Field(None, description="Node name (required for node types)")
    value: Optional[NodeValue] = Field(None, description="Optional literal payload")
    children: List["KnowledgeNode"] = Field(
        default_factory=list, description="Ordered children (links only)"
    )
    truth_value: Optional[TruthValue] = Field(None, description="Optional truth value")

    @model_validator(mode="after")
    def _check_shape(self) -> "KnowledgeNode":
        if self.type.is_link:
            if not self.children:
                raise ValueError(f"{self.type.value} requires at least one child")
        else:
            if self.name is None:
                raise ValueError(f"{self.type.value} requires a name")
            if self.children:
                raise ValueError(f"{self.type.value} cannot have children")
        return self

    @property
    def is_link(self) -> bool:
        return self.type.is_link

    def matches(self, other: "KnowledgeNode") -> bool:
        """Shallow equality on type, name and value (children ignored)."""
        return (
            self.type == other.type
            and self.name == other.name
            and self.value == other.value
        )

    def structurally_equal(self, other: "KnowledgeNode") -> bool:
        """Recursive equality on type, name, value and children (truth values ignored)."""
        if not self.matches(other):
            return False
        if len(self.children) != len(other.children):
            return False
        return all(
            mine.structurally_equal(theirs)
            for mine, theirs in zip(self.children, other.children)
        )

    @classmethod
    def concept(cls, name: str, truth_value: Optional[TruthValue] = None) -> "KnowledgeNode":
        return cls(type=AtomType.CONCEPT_NODE, name=name, truth_value=truth_value)

    @classmethod
    def implication(
        cls,
        antecedent: "KnowledgeNode",
        consequent: "KnowledgeNode",
        truth_value: Optional[TruthValue] = None,
    ) -> "KnowledgeNode":
        return cls(
            type=AtomType.IMPLICATION_LINK,
            children=[antecedent, consequent],
            truth_value=truth_value,
        )


KnowledgeNode.model_rebuild()


class AttentionValue(BaseModel):
    """ECAN importance currencies for a single tracked node.

    Mutated in place by the attention engine, which owns the clamping.
    """

    sti: float = Field(0.0, ge=-100.0, le=100.0, description="Short-term importance")
    lti: float = Field(0.0, ge=0.0, le=100.0, description="Long-term importance")
    vlti: float = Field(0.0, ge=0.0, le=100.0, description="Very-long-term importance")


class ReasoningResult(BaseModel):
    derived: List[KnowledgeNode] = Field(default_factory=list)
    confidence: float = Field(0.0, description="Mean confidence of derived nodes (0 if none)")


class AttentionStatistics(BaseModel):
    total_nodes: int
    focused_nodes: int
    average_sti: float
    total_sti: float


# ============================================================================
# Program Search
# ============================================================================


class ProgramNode(BaseModel):
    """Node of an evolvable program tree."""

    type: Literal["function", "terminal", "variable"]
    value: Union[float, str]
    children: List["ProgramNode"] = Field(default_factory=list)


ProgramNode.model_rebuild()


class Candidate(BaseModel):
    id: str = Field(default_factory=new_id)
    program: ProgramNode
    fitness: float
    generation: int = Field(..., ge=0)


class EvolutionStatistics(BaseModel):
    generation: int
    population_size: int
    best_fitness: float
    average_fitness: float
    diversity_score: float


# ============================================================================
# Message Metadata (tagged union)
# ============================================================================


class TranslationMetadata(BaseModel):
    kind: Literal["translation"] = "translation"
    source_format: Format
    target_format: Format
    context: Optional[str] = Field(None, description="Extra context for the translator")


class KnowledgeMetadata(BaseModel):
    kind: Literal["knowledge"] = "knowledge"
    operation: str = Field("query", description="query | add | update | search | execute")
    mode: Literal["atomese", "metta", "scheme"] = "atomese"


class ReasoningMetadata(BaseModel):
    kind: Literal["reasoning"] = "reasoning"
    nodes: List[KnowledgeNode] = Field(
        default_factory=list, description="Premises; when empty the content is parsed as Atomese"
    )


class EvolutionMetadata(BaseModel):
    kind: Literal["evolution"] = "evolution"
    generations: Optional[int] = Field(None, ge=1, description="Generations to run")


TaskContext = Annotated[
    Union[TranslationMetadata, KnowledgeMetadata, ReasoningMetadata, EvolutionMetadata],
    Field(discriminator="kind"),
]


class TaskMetadata(BaseModel):
    kind: Literal["task"] = "task"
    task_id: str
    context: Optional[TaskContext] = None


class TaskCompletedMetadata(BaseModel):
    kind: Literal["task_completed"] = "task_completed"
    task_id: str


class TaskFailedMetadata(BaseModel):
    kind: Literal["task_failed"] = "task_failed"
    task_id: str
    error: str = ""


MessageMetadata = Annotated[
    Union[
        TaskMetadata,
        TaskCompletedMetadata,
        TaskFailedMetadata,
        TranslationMetadata,
        KnowledgeMetadata,
        ReasoningMetadata,
        EvolutionMetadata,
    ],
    Field(discriminator="kind"),
]


# ============================================================================
# Orchestration Schemas
# ============================================================================


class AgentInfo(BaseModel):
    """Snapshot of a registered agent."""

    id: str
    name: str
    role: AgentRole
    status: AgentStatus = AgentStatus.IDLE
    capabilities: List[str] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: int = 1
    assigned_to: Optional[str] = Field(None, description="Assignee agent id")
    required_capability: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list, description="Task ids that must complete first")
    context: Optional[TaskContext] = Field(None, description="Role-specific parameters for the handler")
    result: Optional[Any] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AgentMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    sender_id: str
    receiver_id: Optional[str] = Field(None, description="None means broadcast")
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    type: MessageType
    metadata: Optional[MessageMetadata] = None


class OrchestrationState(BaseModel):
    agents: Dict[str, AgentInfo]
    tasks: Dict[str, Task]
    message_queue: List[AgentMessage]
    active_session: Optional[str] = None


# ============================================================================
# Collaborator / Persistence Schemas
# ============================================================================


class CommandResponse(BaseModel):
    """Result of a knowledge-store call."""

    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


MemoryType = Literal["experience", "knowledge", "skill", "context"]


class MemoryEntry(BaseModel):
    """Record held by a StrategyStore."""

    id: str = Field(default_factory=new_id)
    agent_id: str
    type: MemoryType
    content: Any
    timestamp: datetime = Field(default_factory=utc_now)
    importance: float = Field(0.5, ge=0.0, le=1.0)
    access_count: int = Field(0, ge=0)
    last_accessed: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemoryQuery(BaseModel):
    agent_id: Optional[str] = None
    type: Optional[MemoryType] = None
    min_importance: Optional[float] = None
    search_term: Optional[str] = None
    sort_by: Literal["timestamp", "importance", "access_count"] = "timestamp"
    limit: Optional[int] = Field(None, ge=1)


Outcome = Literal["success", "failure", "partial"]


class LearningExperience(BaseModel):
    id: str = Field(default_factory=new_id)
    agent_id: str
    task_type: str
    action: str
    outcome: Outcome
    reward: float = Field(..., ge=-1.0, le=1.0)
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class Strategy(BaseModel):
    id: str = Field(default_factory=new_id)
    task_type: str
    pattern: Dict[str, Any] = Field(default_factory=dict, description="Context pattern")
    action: str
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    success_rate: float = Field(0.0, ge=0.0, le=1.0)
    use_count: int = 1
    last_used: datetime = Field(default_factory=utc_now)


class LearningStatistics(BaseModel):
    total_experiences: int
    total_strategies: int
    average_success_rate: float
    exploration_rate: float


class StoreStatistics(BaseModel):
    total_memories: int
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_agent: Dict[str, int] = Field(default_factory=dict)
    average_importance: float = 0.0


class AdjustmentSuggestion(BaseModel):
    increase_exploration: bool = False
    decrease_exploration: bool = False
    message: str

"""Role handlers: what each kind of agent actually does with a task.

Handlers are small classes that satisfy the ``RoleHandler`` protocol. They
hold their own engines and collaborators; nothing here is shared between
agents unless the caller shares it.
"""

from __future__ import annotations

import json
from typing import Callable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from cogniverse import atomese
from cogniverse.atomese import AtomeseParseError
from cogniverse.collaborators import KnowledgeStoreClient, Translator
from cogniverse.logging_utils import log_deterministic, log_warning
from cogniverse.reasoning.ecan import ECANEngine
from cogniverse.reasoning.moses import MOSESEngine
from cogniverse.reasoning.pln import PLNReasoner
from cogniverse.schemas import (
    CommandResponse,
    EvolutionMetadata,
    KnowledgeMetadata,
    KnowledgeNode,
    MessageMetadata,
    ProgramNode,
    ReasoningMetadata,
    TaskContext,
    TranslationMetadata,
)

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_STIMULUS = 10.0


class MissingMetadataError(ValueError):
    """Raised when a task arrives without the metadata its role needs."""

    def __init__(self, *, handler: str, expected: str) -> None:
        self.handler = handler
        self.expected = expected
        super().__init__(
            f"{handler} requires {expected} metadata on the task.\n"
            "Pass it as the task context when creating the task."
        )


class KnowledgeStoreError(RuntimeError):
    """Raised when the knowledge store answers a command with success=False."""


class TranslationHandler:
    """Delegates to an injected Translator."""

    name = "translate"

    def __init__(self, translator: Translator):
        self.translator = translator

    async def process_task(self, content: str, context: Optional[TaskContext]) -> str:
        if not isinstance(context, TranslationMetadata):
            raise MissingMetadataError(handler="Translation", expected="TranslationMetadata")

        return await self.translator.translate(
            content, context.source_format, context.target_format
        )

    async def answer_query(self, content: str, metadata: Optional[MessageMetadata]) -> str:
        return "I can translate between natural language, Atomese, MeTTa and Scheme."


class ReasoningHandler:
    """Forward-chains over the premises and pushes attention toward conclusions.

    Premises come from ``ReasoningMetadata.nodes`` or, when absent, are
    parsed from the task content as Atomese. Each task starts from a clean
    knowledge base; the attention engine accumulates across tasks.
    """

    name = "forward-chain"

    def __init__(
        self,
        reasoner: PLNReasoner,
        ecan: ECANEngine,
        stimulus: float = DEFAULT_STIMULUS,
    ):
        self.reasoner = reasoner
        self.ecan = ecan
        self.stimulus = stimulus

    async def process_task(self, content: str, context: Optional[TaskContext]) -> str:
        if isinstance(context, ReasoningMetadata) and context.nodes:
            premises: List[KnowledgeNode] = list(context.nodes)
        else:
            premises = atomese.parse_many(content)

        self.reasoner.clear()
        result = self.reasoner.reason(premises)

        for node in result.derived:
            key = atomese.node_key(node)
            self.ecan.add_node(key, node)
            self.ecan.stimulate(key, self.stimulus)

        return json.dumps(
            {
                "premises": len(premises),
                "derived": [atomese.generate(node) for node in result.derived],
                "confidence": result.confidence,
                "attentional_focus": self.ecan.get_attentional_focus(),
            }
        )

    async def answer_query(self, content: str, metadata: Optional[MessageMetadata]) -> str:
        try:
            node = atomese.parse(content)
        except AtomeseParseError:
            return f"I can perform logical reasoning and inference. Query: {content}"

        truth_value = self.reasoner.query(node)
        if truth_value is None:
            return f"Unknown: {atomese.generate(node)}"
        return atomese.generate(node.model_copy(update={"truth_value": truth_value}))


class KnowledgeHandler:
    """Runs knowledge-store operations, retrying transient connection errors."""

    name = "knowledge-store"

    def __init__(
        self,
        client: KnowledgeStoreClient,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    ):
        self.client = client
        self.max_attempts = max_attempts

    async def process_task(self, content: str, context: Optional[TaskContext]) -> str:
        metadata = context if isinstance(context, KnowledgeMetadata) else KnowledgeMetadata()
        operation = metadata.operation.lower()

        if operation in ("query", "search"):
            response = await self._call(lambda: self.client.query(content))
        elif operation == "execute":
            response = await self._call(lambda: self.client.execute(content, metadata.mode))
        else:
            command = f"{operation} {content}"
            response = await self._call(lambda: self.client.execute(command, metadata.mode))

        if not response.success:
            raise KnowledgeStoreError(response.error or f"Knowledge operation {operation!r} failed")
        return response.model_dump_json()

    async def answer_query(self, content: str, metadata: Optional[MessageMetadata]) -> str:
        response = await self._call(lambda: self.client.query(content))
        return response.model_dump_json()

    async def _call(self, operation: Callable) -> CommandResponse:
        # Only transport errors are retried; reraise=True surfaces the last one
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((ConnectionError, TimeoutError)),
            stop=stop_after_attempt(self.max_attempts),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log_warning(
                        f"Knowledge store retry {attempt.retry_state.attempt_number}"
                        f"/{self.max_attempts}"
                    )
                return await operation()

        raise RuntimeError("Knowledge store retry loop exited unexpectedly")


class PlanningHandler:
    """Decomposes a request into the canonical four steps."""

    name = "decompose"

    async def process_task(self, content: str, context: Optional[TaskContext]) -> str:
        subtasks = self.decompose(content)
        return json.dumps(
            {
                "original_task": content,
                "subtasks": subtasks,
                "estimated_steps": len(subtasks),
            }
        )

    async def answer_query(self, content: str, metadata: Optional[MessageMetadata]) -> str:
        return f"Planning for: {content}"

    @staticmethod
    def decompose(task: str) -> List[str]:
        return [
            f"Analyze requirements: {task}",
            "Identify resources needed",
            "Execute main task",
            "Validate results",
        ]


class OptimizationHandler:
    """Runs an evolutionary search and reports the best program."""

    name = "evolve"

    def __init__(
        self,
        engine: MOSESEngine,
        program_generator: Callable[[], ProgramNode],
    ):
        self.engine = engine
        self.program_generator = program_generator

    async def process_task(self, content: str, context: Optional[TaskContext]) -> str:
        generations = context.generations if isinstance(context, EvolutionMetadata) else None

        self.engine.initialize_population(self.program_generator)
        best = self.engine.evolve(generations)
        statistics = self.engine.get_statistics()
        log_deterministic(
            f"[Optimizer] {statistics.generation} generations, best fitness {best.fitness:.4f}"
        )

        return json.dumps(
            {
                "objective": content,
                "best_program": best.program.model_dump(mode="json"),
                "best_fitness": best.fitness,
                "statistics": statistics.model_dump(mode="json"),
            }
        )

    async def answer_query(self, content: str, metadata: Optional[MessageMetadata]) -> str:
        best = self.engine.get_best()
        if best is None:
            return "No evolution run yet."
        return json.dumps(
            {"best_fitness": best.fitness, "generation": self.engine.get_generation()}
        )

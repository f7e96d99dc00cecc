"""Capability-tagged agent.

An Agent owns a role handler (the part that differs per role) and handles
the message protocol shared by every role:

- TASK: go Busy, run the handler, answer with a task-completed or
  task-failed response. Failure moves the agent to Error; success returns
  it to Idle once no other task is in flight. Error and Offline stick
  until the orchestrator changes them
- QUERY: answer through the handler without touching status
- anything else is recorded in the inbox only

Outbound messages go through ``on_send``, which the orchestrator binds on
registration.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from cogniverse.learning import AgentLearning
from cogniverse.logging_utils import log_error, log_info, log_warning
from cogniverse.schemas import (
    AgentInfo,
    AgentMessage,
    AgentRole,
    AgentStatus,
    MessageMetadata,
    MessageType,
    TaskCompletedMetadata,
    TaskContext,
    TaskFailedMetadata,
    TaskMetadata,
    new_id,
)

MessageSink = Callable[[AgentMessage], None]


class RoleHandler(Protocol):
    """Protocol for role-specific behaviour."""

    name: str

    async def process_task(self, content: str, context: Optional[TaskContext]) -> str:
        """Do the work for a task and return the result text.

        Raising fails the task; the agent reports the error text.
        """
        ...

    async def answer_query(self, content: str, metadata: Optional[MessageMetadata]) -> str:
        ...


class Agent:
    """A registered participant in the orchestration."""

    def __init__(
        self,
        name: str,
        role: AgentRole,
        capabilities: Iterable[str],
        handler: RoleHandler,
        *,
        context: Optional[Dict[str, Any]] = None,
        learning: Optional[AgentLearning] = None,
        agent_id: Optional[str] = None,
    ):
        self.id = agent_id or new_id()
        self.name = name
        self.role = role
        self.status = AgentStatus.IDLE
        self.capabilities: List[str] = list(dict.fromkeys(capabilities))
        self.context: Dict[str, Any] = dict(context or {})
        self.handler = handler
        self.learning = learning
        self.inbox: List[AgentMessage] = []
        self.active_tasks = 0
        self.on_send: Optional[MessageSink] = None

    async def receive_message(self, message: AgentMessage) -> None:
        self.inbox.append(message)

        if message.type == MessageType.TASK:
            await self._handle_task(message)
        elif message.type == MessageType.QUERY:
            await self._handle_query(message)

    async def send_message(
        self,
        content: str,
        receiver_id: Optional[str] = None,
        type: MessageType = MessageType.RESPONSE,
        metadata: Optional[MessageMetadata] = None,
    ) -> AgentMessage:
        message = AgentMessage(
            sender_id=self.id,
            receiver_id=receiver_id,
            content=content,
            type=type,
            metadata=metadata,
        )
        if self.on_send is None:
            log_warning(f"Agent {self.name} is not registered; dropping outbound message")
        else:
            self.on_send(message)
        return message

    async def _handle_task(self, message: AgentMessage) -> None:
        task_id: Optional[str] = None
        context: Optional[TaskContext] = None
        if isinstance(message.metadata, TaskMetadata):
            task_id = message.metadata.task_id
            context = message.metadata.context
        elif message.metadata is not None and message.metadata.kind not in (
            "task_completed",
            "task_failed",
        ):
            context = message.metadata

        self.active_tasks += 1
        if self.status in (AgentStatus.IDLE, AgentStatus.BUSY):
            self.set_status(AgentStatus.BUSY)
        try:
            result = await self.handler.process_task(message.content, context)
        except Exception as exc:  # handler failures fail the task, not the agent loop
            log_error(f"Agent {self.name} task failed: {exc}")
            self.active_tasks -= 1
            if self.status != AgentStatus.OFFLINE:
                self.set_status(AgentStatus.ERROR)
            error = f"Error: {exc}"
            await self.send_message(
                error,
                message.sender_id,
                MessageType.RESPONSE,
                TaskFailedMetadata(task_id=task_id, error=str(exc)) if task_id else None,
            )
            await self._learn(context, "failure")
            return

        self.active_tasks -= 1
        # Error and Offline are only left through the orchestrator
        if self.active_tasks == 0 and self.status == AgentStatus.BUSY:
            self.set_status(AgentStatus.IDLE)
        await self.send_message(
            result,
            message.sender_id,
            MessageType.RESPONSE,
            TaskCompletedMetadata(task_id=task_id) if task_id else None,
        )
        await self._learn(context, "success")

    async def _handle_query(self, message: AgentMessage) -> None:
        try:
            response = await self.handler.answer_query(message.content, message.metadata)
        except Exception as exc:  # query errors are answered, not raised
            log_error(f"Agent {self.name} query failed: {exc}")
            response = f"Error: {exc}"

        await self.send_message(response, message.sender_id, MessageType.RESPONSE)

    async def _learn(self, context: Optional[TaskContext], outcome: str) -> None:
        if self.learning is None:
            return
        await self.learning.record_experience(
            task_type=self.role.value,
            action=self.handler.name,
            outcome=outcome,
            context={"context": context.kind} if context is not None else {},
        )

    def can_handle(self, capability: str) -> bool:
        return capability in self.capabilities

    def set_status(self, status: AgentStatus) -> None:
        if status != self.status:
            log_info(f"Agent {self.name}: {self.status.value} -> {status.value}")
        self.status = status

    def get_info(self) -> AgentInfo:
        return AgentInfo(
            id=self.id,
            name=self.name,
            role=self.role,
            status=self.status,
            capabilities=list(self.capabilities),
            context=dict(self.context),
        )

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, role={self.role.value}, status={self.status.value})"

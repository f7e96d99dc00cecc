"""
Multi-agent orchestrator: registry, task lifecycle and message routing.

The orchestrator is the only component holding global mutable state (the
agent registry, the task table and the message history). Everything runs on
a single asyncio event loop:

- ``assign_task`` delivers a TASK message and returns without waiting; the
  agent's handling is scheduled as an asyncio task and tracked for ``join()``
- Agents answer with RESPONSE messages whose metadata marks the referenced
  task completed or failed
- Each task can be awaited through ``wait_for_task``; ``process_request``
  uses it with a bounded timeout

Task lifecycle::

    pending -> assigned -> in_progress -> completed | failed
    (any non-terminal state) -> cancelled
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Set

from cogniverse.agents.agent import Agent
from cogniverse.logging_utils import log_error, log_info, log_success, log_warning
from cogniverse.schemas import (
    AgentInfo,
    AgentMessage,
    AgentStatus,
    MessageMetadata,
    MessageType,
    OrchestrationState,
    Task,
    TaskCompletedMetadata,
    TaskContext,
    TaskFailedMetadata,
    TaskMetadata,
    TaskStatus,
    utc_now,
)

ORCHESTRATOR_ID = "orchestrator"
USER_ID = "user"
PLANNING_CAPABILITY = "task-decomposition"
NO_PLANNER_RESPONSE = "Request processed (no planning agent available)"
DEFAULT_RESPONSE = "Request processed successfully"

# Forward-only transitions; cancellation is handled separately
_TRANSITIONS: Dict[TaskStatus, Set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.ASSIGNED},
    TaskStatus.ASSIGNED: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
}


class TaskNotFoundError(KeyError):
    """Raised when a task id is not in the task table."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(
            f"Task not found: {task_id}. "
            "It may never have existed or was removed by clear_completed_tasks()."
        )

    def __str__(self) -> str:
        return self.args[0]


class AgentNotFoundError(KeyError):
    """Raised when an agent id is not registered."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(
            f"Agent not found: {agent_id}. "
            "Register the agent first; unregister() and shutdown() remove agents."
        )

    def __str__(self) -> str:
        return self.args[0]


class InvalidTaskTransitionError(Exception):
    """Raised when a task would move backwards or out of a terminal state."""

    def __init__(self, *, task_id: str, current: TaskStatus, requested: TaskStatus) -> None:
        self.task_id = task_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Task {task_id} cannot move from {current.value} to {requested.value}.\n"
            "Tasks only move forward (pending -> assigned -> in_progress -> "
            "completed|failed); create a new task to retry."
        )


class TaskDependencyError(Exception):
    """Raised when a task is assigned before its dependencies have completed."""

    def __init__(self, *, task_id: str, unmet: List[str]) -> None:
        self.task_id = task_id
        self.unmet = unmet
        super().__init__(
            f"Task {task_id} has unmet dependencies: {', '.join(unmet)}.\n"
            "Wait for them with wait_for_task() before assigning."
        )


class TaskFailedError(Exception):
    """Raised by process_request when the planning task fails."""

    def __init__(self, *, task_id: str, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Task failed: {reason or 'Unknown error'}")


class TaskTimeoutError(Exception):
    """Raised when a task does not finish within the allowed time."""

    def __init__(self, *, task_id: str, timeout: float) -> None:
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(
            f"Task timeout - task {task_id} did not complete within {timeout:g}s.\n"
            "The task keeps running; poll get_task() or call wait_for_task() again."
        )


class Orchestrator:
    """Coordinates agents, tasks and messages."""

    def __init__(
        self,
        request_timeout: float = 10.0,
        history_limit: int = 100,
        session_id: Optional[str] = None,
    ):
        self.request_timeout = request_timeout
        self.history_limit = history_limit
        self.active_session = session_id

        self.agents: Dict[str, Agent] = {}
        self.tasks: Dict[str, Task] = {}
        self.message_history: List[AgentMessage] = []

        self._completions: Dict[str, asyncio.Future] = {}
        self._deliveries: Set[asyncio.Task] = set()

        # Ids that may receive messages without being registered agents
        self._sinks = {ORCHESTRATOR_ID, USER_ID}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_agent(self, agent: Agent) -> None:
        if agent.id in self.agents:
            log_warning(f"Agent {agent.id} already registered; replacing it")
        if agent.status == AgentStatus.OFFLINE:
            agent.set_status(AgentStatus.IDLE)

        self.agents[agent.id] = agent
        agent.on_send = self.route_message
        log_info(f"Agent registered: {agent.name} ({agent.id})")

    def unregister_agent(self, agent_id: str) -> bool:
        agent = self.agents.pop(agent_id, None)
        if agent is None:
            return False

        agent.set_status(AgentStatus.OFFLINE)
        agent.on_send = None
        self._fail_open_tasks(agent_id, f"Agent {agent.name} was unregistered")
        log_info(f"Agent unregistered: {agent.name}")
        return True

    def find_agent_by_capability(self, capability: str) -> Optional[Agent]:
        """Prefer an Idle agent with ``capability``; otherwise any agent that has it."""
        capable = self.get_agents_by_capability(capability)
        for agent in capable:
            if agent.status == AgentStatus.IDLE:
                return agent
        return capable[0] if capable else None

    def get_agents_by_capability(self, capability: str) -> List[Agent]:
        return [agent for agent in self.agents.values() if agent.can_handle(capability)]

    def reset_agent(self, agent_id: str) -> AgentInfo:
        """Bring an agent back to Idle (agents never leave Error on their own)."""
        agent = self._require_agent(agent_id)
        agent.set_status(AgentStatus.IDLE)
        return agent.get_info()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(
        self,
        description: str,
        capability: Optional[str] = None,
        priority: int = 1,
        dependencies: Optional[Iterable[str]] = None,
        context: Optional[TaskContext] = None,
    ) -> Task:
        """Create a Pending task, assigning it right away if a capable agent exists.

        Assignment is only attempted here; tasks left Pending are never
        picked up later unless ``assign_task`` is called.
        """
        dependencies = list(dependencies or [])
        for dependency in dependencies:
            if dependency not in self.tasks:
                raise TaskNotFoundError(dependency)

        task = Task(
            description=description,
            priority=priority,
            required_capability=capability,
            dependencies=dependencies,
            context=context,
        )
        self.tasks[task.id] = task

        if capability:
            agent = self.find_agent_by_capability(capability)
            if agent is not None and not self._unmet_dependencies(task):
                await self.assign_task(task.id, agent.id)

        return task

    async def assign_task(self, task_id: str, agent_id: str) -> Task:
        task = self._require_task(task_id)
        agent = self._require_agent(agent_id)

        unmet = self._unmet_dependencies(task)
        if unmet:
            raise TaskDependencyError(task_id=task_id, unmet=unmet)

        self._transition(task, TaskStatus.ASSIGNED)
        task.assigned_to = agent_id

        self.route_message(
            AgentMessage(
                sender_id=ORCHESTRATOR_ID,
                receiver_id=agent_id,
                content=task.description,
                type=MessageType.TASK,
                metadata=TaskMetadata(task_id=task.id, context=task.context),
            )
        )
        self._transition(task, TaskStatus.IN_PROGRESS)

        log_info(f"Task {task_id} assigned to agent {agent.name}")
        return task

    def cancel_task(self, task_id: str) -> Task:
        task = self._require_task(task_id)
        if task.status.is_terminal:
            raise InvalidTaskTransitionError(
                task_id=task_id, current=task.status, requested=TaskStatus.CANCELLED
            )

        task.status = TaskStatus.CANCELLED
        task.updated_at = utc_now()
        self._resolve(task)
        log_warning(f"Task {task_id} cancelled")
        return task

    async def wait_for_task(self, task_id: str, timeout: Optional[float] = None) -> Task:
        """Wait until the task reaches a terminal state and return it.

        Raises TaskTimeoutError if ``timeout`` seconds pass first; the task
        itself is left untouched.
        """
        task = self._require_task(task_id)
        if task.status.is_terminal:
            return task

        future = self._completions.get(task_id)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._completions[task_id] = future

        try:
            await asyncio.wait_for(asyncio.shield(future), timeout)
        except asyncio.TimeoutError:
            raise TaskTimeoutError(task_id=task_id, timeout=timeout) from None
        return task

    def clear_completed_tasks(self) -> int:
        completed = [
            task_id for task_id, task in self.tasks.items()
            if task.status == TaskStatus.COMPLETED
        ]
        for task_id in completed:
            del self.tasks[task_id]
            self._completions.pop(task_id, None)
        return len(completed)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def route_message(self, message: AgentMessage) -> None:
        """Record ``message`` and deliver it; apply task completion/failure."""
        self.message_history.append(message)

        if message.receiver_id is not None:
            recipient = self.agents.get(message.receiver_id)
            if recipient is not None:
                self._deliver(recipient, message)
            elif message.receiver_id not in self._sinks:
                log_warning(f"Recipient not found: {message.receiver_id}")
        else:
            for agent in list(self.agents.values()):
                if agent.id != message.sender_id:
                    self._deliver(agent, message)

        if isinstance(message.metadata, (TaskCompletedMetadata, TaskFailedMetadata)):
            self._apply_task_outcome(message)

    async def send_to_agent(
        self,
        agent_id: str,
        content: str,
        type: MessageType = MessageType.QUERY,
        metadata: Optional[MessageMetadata] = None,
        sender_id: str = USER_ID,
    ) -> AgentMessage:
        message = AgentMessage(
            sender_id=sender_id,
            receiver_id=agent_id,
            content=content,
            type=type,
            metadata=metadata,
        )
        self.route_message(message)
        return message

    async def broadcast(self, content: str) -> AgentMessage:
        message = AgentMessage(
            sender_id=ORCHESTRATOR_ID,
            receiver_id=None,
            content=content,
            type=MessageType.BROADCAST,
        )
        self.route_message(message)
        return message

    async def join(self) -> None:
        """Wait for every scheduled delivery, including ones scheduled meanwhile."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    def _deliver(self, agent: Agent, message: AgentMessage) -> None:
        delivery = asyncio.get_running_loop().create_task(agent.receive_message(message))
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._delivery_done)

    def _delivery_done(self, delivery: asyncio.Task) -> None:
        self._deliveries.discard(delivery)
        if not delivery.cancelled() and delivery.exception() is not None:
            log_error(f"Message delivery failed: {delivery.exception()!r}")

    def _apply_task_outcome(self, message: AgentMessage) -> None:
        metadata = message.metadata
        task = self.tasks.get(metadata.task_id)
        if task is None:
            log_warning(f"Response for unknown task {metadata.task_id}")
            return
        if task.status.is_terminal:
            # Late or duplicate response: terminal states are final
            return
        if task.assigned_to is not None and message.sender_id != task.assigned_to:
            log_warning(
                f"Ignoring outcome for task {task.id} from {message.sender_id}; "
                f"assigned to {task.assigned_to}"
            )
            return

        completed = isinstance(metadata, TaskCompletedMetadata)
        outcome = TaskStatus.COMPLETED if completed else TaskStatus.FAILED
        if outcome not in _TRANSITIONS[task.status]:
            log_warning(f"Ignoring outcome for task {task.id} in state {task.status.value}")
            return

        task.result = message.content
        self._transition(task, outcome)
        if completed:
            log_success(f"Task {task.id} completed")
        else:
            log_error(f"Task {task.id} failed: {message.content}")
        self._resolve(task)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self) -> OrchestrationState:
        return OrchestrationState(
            agents={agent_id: agent.get_info() for agent_id, agent in self.agents.items()},
            tasks=dict(self.tasks),
            message_queue=self.message_history[-self.history_limit:],
            active_session=self.active_session,
        )

    def get_agents(self, status: Optional[AgentStatus] = None) -> List[AgentInfo]:
        return [
            agent.get_info()
            for agent in self.agents.values()
            if status is None or agent.status == status
        ]

    def get_agent(self, agent_id: str) -> Optional[AgentInfo]:
        agent = self.agents.get(agent_id)
        return agent.get_info() if agent else None

    def get_tasks(
        self,
        status: Optional[TaskStatus] = None,
        assigned_to: Optional[str] = None,
    ) -> List[Task]:
        return [
            task
            for task in self.tasks.values()
            if (status is None or task.status == status)
            and (assigned_to is None or task.assigned_to == assigned_to)
        ]

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    def get_message_history(self, limit: int = 50) -> List[AgentMessage]:
        if limit <= 0:
            return []
        return self.message_history[-limit:]

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def process_request(self, request: str, context: Optional[TaskContext] = None) -> str:
        """Hand ``request`` to a planning agent and wait for its answer.

        Returns the plan text, or a fixed notice when no planner is
        registered. Raises TaskFailedError or TaskTimeoutError.
        """
        log_info(f"Processing request: {request}")
        task = await self.create_task(request, context=context)

        planner = self.find_agent_by_capability(PLANNING_CAPABILITY)
        if planner is None:
            return NO_PLANNER_RESPONSE

        await self.assign_task(task.id, planner.id)
        finished = await self.wait_for_task(task.id, self.request_timeout)

        if finished.status == TaskStatus.COMPLETED:
            return finished.result or DEFAULT_RESPONSE
        raise TaskFailedError(
            task_id=task.id,
            reason=finished.result or finished.status.value,
        )

    def shutdown(self) -> None:
        for agent_id, agent in self.agents.items():
            agent.set_status(AgentStatus.OFFLINE)
            agent.on_send = None
            self._fail_open_tasks(agent_id, "Orchestrator shut down")
        self.agents.clear()
        log_info("Orchestrator shutdown complete")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_task(self, task_id: str) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _require_agent(self, agent_id: str) -> Agent:
        agent = self.agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def _unmet_dependencies(self, task: Task) -> List[str]:
        unmet = []
        for dependency in task.dependencies:
            other = self.tasks.get(dependency)
            # Removed by clear_completed_tasks() means it completed
            if other is not None and other.status != TaskStatus.COMPLETED:
                unmet.append(dependency)
        return unmet

    def _transition(self, task: Task, status: TaskStatus) -> None:
        if status not in _TRANSITIONS.get(task.status, set()):
            raise InvalidTaskTransitionError(
                task_id=task.id, current=task.status, requested=status
            )
        task.status = status
        task.updated_at = utc_now()

    def _fail_open_tasks(self, agent_id: str, reason: str) -> None:
        """Fail the non-terminal tasks assigned to an agent that can no longer answer."""
        for task in self.tasks.values():
            if task.assigned_to != agent_id or task.status.is_terminal:
                continue
            task.result = f"Error: {reason}"
            self._transition(task, TaskStatus.FAILED)
            log_error(f"Task {task.id} failed: {reason}")
            self._resolve(task)

    def _resolve(self, task: Task) -> None:
        future = self._completions.pop(task.id, None)
        if future is not None and not future.done():
            future.set_result(task.status)

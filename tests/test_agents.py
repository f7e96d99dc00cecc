"""Tests for the Agent message protocol and role handlers."""

import json
from unittest.mock import AsyncMock

import pytest

from cogniverse.agents import (
    Agent,
    KnowledgeHandler,
    KnowledgeStoreError,
    MissingMetadataError,
    PlanningHandler,
    ROLE_CAPABILITIES,
    ReasoningHandler,
    build_agent,
)
from cogniverse.collaborators import InMemoryKnowledgeStore
from cogniverse.learning import AgentLearning
from cogniverse.persistence import InMemoryStrategyStore
from cogniverse.reasoning import ECANEngine, MOSESEngine, MosesConfig, PLNReasoner
from cogniverse.schemas import (
    AgentMessage,
    AgentRole,
    AgentStatus,
    CommandResponse,
    EvolutionMetadata,
    Format,
    KnowledgeMetadata,
    MessageType,
    TaskCompletedMetadata,
    TaskFailedMetadata,
    TaskMetadata,
    TranslationMetadata,
)

PREMISES = """
(ImplicationLink (ConceptNode "A") (ConceptNode "B") (stv 0.9 0.8))
(ImplicationLink (ConceptNode "B") (ConceptNode "C") (stv 0.8 0.7))
"""


def bind(agent: Agent) -> list:
    sent: list[AgentMessage] = []
    agent.on_send = sent.append
    return sent


def task_message(content: str, context=None, task_id: str = "t1") -> AgentMessage:
    return AgentMessage(
        sender_id="orchestrator",
        receiver_id="agent",
        content=content,
        type=MessageType.TASK,
        metadata=TaskMetadata(task_id=task_id, context=context),
    )


def query_message(content: str) -> AgentMessage:
    return AgentMessage(
        sender_id="user", receiver_id="agent", content=content, type=MessageType.QUERY
    )


@pytest.mark.asyncio
async def test_successful_task_reports_completion_and_goes_idle():
    agent = build_agent(AgentRole.PLANNER)
    sent = bind(agent)

    await agent.receive_message(task_message("Build a house"))

    assert agent.status == AgentStatus.IDLE
    assert len(sent) == 1
    response = sent[0]
    assert response.type == MessageType.RESPONSE
    assert response.receiver_id == "orchestrator"
    assert response.metadata == TaskCompletedMetadata(task_id="t1")

    plan = json.loads(response.content)
    assert plan["original_task"] == "Build a house"
    assert plan["subtasks"][0] == "Analyze requirements: Build a house"
    assert plan["estimated_steps"] == 4


@pytest.mark.asyncio
async def test_failed_task_reports_failure_and_goes_to_error():
    agent = build_agent(AgentRole.TRANSLATOR)
    sent = bind(agent)

    await agent.receive_message(task_message("cats are animals"))

    assert agent.status == AgentStatus.ERROR
    assert isinstance(sent[0].metadata, TaskFailedMetadata)
    assert sent[0].content.startswith("Error:")
    assert "TranslationMetadata" in sent[0].metadata.error


@pytest.mark.asyncio
async def test_query_errors_are_answered_without_status_change():
    handler = AsyncMock()
    handler.name = "mock"
    handler.answer_query.side_effect = RuntimeError("no idea")
    agent = Agent("Mock", AgentRole.PLANNER, ["x"], handler)
    sent = bind(agent)

    await agent.receive_message(query_message("why?"))

    assert agent.status == AgentStatus.IDLE
    assert sent[0].content == "Error: no idea"
    assert sent[0].receiver_id == "user"
    assert sent[0].metadata is None


@pytest.mark.asyncio
async def test_other_message_types_are_only_recorded():
    handler = AsyncMock()
    handler.name = "mock"
    agent = Agent("Mock", AgentRole.PLANNER, ["x"], handler)
    sent = bind(agent)
    broadcast = AgentMessage(sender_id="orchestrator", content="hello", type=MessageType.BROADCAST)

    await agent.receive_message(broadcast)

    assert agent.inbox == [broadcast]
    assert sent == []
    handler.process_task.assert_not_called()


@pytest.mark.asyncio
async def test_unregistered_agent_drops_outbound_messages():
    agent = build_agent(AgentRole.PLANNER)
    message = await agent.send_message("hello", "someone")
    assert message.sender_id == agent.id


def test_factory_uses_role_defaults():
    for role in AgentRole:
        agent = build_agent(role)
        assert agent.role == role
        assert agent.capabilities == ROLE_CAPABILITIES[role]
        assert agent.get_info().status == AgentStatus.IDLE
    assert build_agent(AgentRole.PLANNER).can_handle("task-decomposition")
    assert not build_agent(AgentRole.PLANNER).can_handle("deduction")


@pytest.mark.asyncio
async def test_translation_task_uses_metadata():
    agent = build_agent(AgentRole.TRANSLATOR)
    sent = bind(agent)
    context = TranslationMetadata(source_format=Format.ATOMESE, target_format=Format.METTA)

    await agent.receive_message(
        task_message('(InheritanceLink (ConceptNode "cat") (ConceptNode "animal"))', context)
    )

    assert sent[0].content == "(: cat animal)"
    assert isinstance(sent[0].metadata, TaskCompletedMetadata)


@pytest.mark.asyncio
async def test_reasoning_handler_derives_and_stimulates():
    ecan = ECANEngine()
    handler = ReasoningHandler(PLNReasoner(), ecan, stimulus=60.0)

    summary = json.loads(await handler.process_task(PREMISES, None))

    assert summary["premises"] == 2
    assert summary["derived"] == [
        '(ImplicationLink (ConceptNode "A") (ConceptNode "C") (stv 0.720 0.403))'
    ]
    assert summary["confidence"] == pytest.approx(0.4032)
    assert summary["attentional_focus"] == [
        '(ImplicationLink (ConceptNode "A") (ConceptNode "C"))'
    ]

    answer = await handler.answer_query('(ImplicationLink (ConceptNode "A") (ConceptNode "C"))', None)
    assert "(stv 0.720 0.403)" in answer
    unknown = await handler.answer_query('(ImplicationLink (ConceptNode "C") (ConceptNode "A"))', None)
    assert unknown.startswith("Unknown")


@pytest.mark.asyncio
async def test_reasoning_task_with_bad_atomese_fails():
    agent = build_agent(AgentRole.REASONER)
    sent = bind(agent)

    await agent.receive_message(task_message("(ImplicationLink"))

    assert agent.status == AgentStatus.ERROR
    assert isinstance(sent[0].metadata, TaskFailedMetadata)


@pytest.mark.asyncio
async def test_knowledge_handler_retries_connection_errors():
    client = AsyncMock()
    client.query.side_effect = [
        ConnectionError("down"),
        ConnectionError("still down"),
        CommandResponse(success=True, result=["x"]),
    ]
    handler = KnowledgeHandler(client)

    result = json.loads(await handler.process_task("x", KnowledgeMetadata(operation="query")))

    assert result["result"] == ["x"]
    assert client.query.await_count == 3


@pytest.mark.asyncio
async def test_knowledge_handler_gives_up_after_max_attempts():
    client = AsyncMock()
    client.query.side_effect = ConnectionError("down")
    handler = KnowledgeHandler(client, max_attempts=2)

    with pytest.raises(ConnectionError):
        await handler.process_task("x", None)
    assert client.query.await_count == 2


@pytest.mark.asyncio
async def test_knowledge_handler_other_errors_are_not_retried():
    client = AsyncMock()
    client.execute.side_effect = PermissionError("nope")
    handler = KnowledgeHandler(client)

    with pytest.raises(PermissionError):
        await handler.process_task("x", KnowledgeMetadata(operation="execute"))
    assert client.execute.await_count == 1


@pytest.mark.asyncio
async def test_knowledge_add_then_query_against_store():
    store = InMemoryKnowledgeStore()
    handler = KnowledgeHandler(store)

    await handler.process_task(
        '(InheritanceLink (ConceptNode "cat") (ConceptNode "animal"))',
        KnowledgeMetadata(operation="add"),
    )
    answer = json.loads(await handler.answer_query("animal", None))
    assert len(answer["result"]) == 1

    with pytest.raises(KnowledgeStoreError):
        await handler.process_task("anything", KnowledgeMetadata(operation="update"))


@pytest.mark.asyncio
async def test_optimizer_runs_requested_generations():
    engine = MOSESEngine(lambda program: 1.0, MosesConfig(population_size=10, elitism_count=2))
    agent = build_agent(AgentRole.OPTIMIZER, moses=engine)
    sent = bind(agent)

    await agent.receive_message(task_message("fit", EvolutionMetadata(generations=3)))

    report = json.loads(sent[0].content)
    assert report["statistics"]["generation"] == 3
    assert report["best_fitness"] == 1.0


@pytest.mark.asyncio
async def test_agent_records_experience_when_learning():
    store = InMemoryStrategyStore()
    agent = build_agent(AgentRole.PLANNER)
    agent.learning = AgentLearning(agent.id, store)
    bind(agent)

    await agent.receive_message(task_message("plan"))

    stats = agent.learning.get_statistics()
    assert stats.total_experiences == 1
    assert agent.learning.strategies["planner_decompose"].success_rate == 1.0


@pytest.mark.asyncio
async def test_planning_decomposition_is_fixed():
    assert PlanningHandler.decompose("x") == [
        "Analyze requirements: x",
        "Identify resources needed",
        "Execute main task",
        "Validate results",
    ]


def test_missing_metadata_error_message():
    error = MissingMetadataError(handler="Translation", expected="TranslationMetadata")
    assert "TranslationMetadata" in str(error)

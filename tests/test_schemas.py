"""Unit tests for the core schema building blocks."""

import pytest
from pydantic import TypeAdapter, ValidationError

from cogniverse.schemas import (
    AgentMessage,
    AtomType,
    AttentionValue,
    KnowledgeNode,
    MessageType,
    ReasoningMetadata,
    Task,
    TaskCompletedMetadata,
    TaskMetadata,
    TaskStatus,
    TranslationMetadata,
    TruthValue,
)


def test_truth_value_is_frozen():
    truth = TruthValue(strength=0.5, confidence=0.5)
    with pytest.raises(ValidationError):
        truth.strength = 0.7


def test_node_types_require_a_name():
    with pytest.raises(ValidationError):
        KnowledgeNode(type=AtomType.CONCEPT_NODE)


def test_node_types_reject_children():
    with pytest.raises(ValidationError):
        KnowledgeNode(
            type=AtomType.PREDICATE_NODE,
            name="p",
            children=[KnowledgeNode.concept("x")],
        )


def test_links_require_children():
    with pytest.raises(ValidationError):
        KnowledgeNode(type=AtomType.AND_LINK)


def test_matches_is_shallow_and_structural_equality_is_deep():
    a_to_b = KnowledgeNode.implication(KnowledgeNode.concept("A"), KnowledgeNode.concept("B"))
    a_to_c = KnowledgeNode.implication(KnowledgeNode.concept("A"), KnowledgeNode.concept("C"))

    assert a_to_b.matches(a_to_c)
    assert not a_to_b.structurally_equal(a_to_c)

    with_truth = a_to_b.model_copy(update={"truth_value": TruthValue(strength=1, confidence=1)})
    assert a_to_b.structurally_equal(with_truth)


def test_attention_value_bounds():
    with pytest.raises(ValidationError):
        AttentionValue(sti=150)
    with pytest.raises(ValidationError):
        AttentionValue(lti=-1)


def test_task_defaults():
    task = Task(description="do it")
    assert task.status == TaskStatus.PENDING
    assert task.priority == 1
    assert task.assigned_to is None
    assert task.dependencies == []
    assert task.created_at.tzinfo is not None


def test_terminal_statuses():
    assert {s for s in TaskStatus if s.is_terminal} == {
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.CANCELLED,
    }


def test_message_metadata_is_a_tagged_union():
    message = AgentMessage.model_validate(
        {
            "sender_id": "a",
            "receiver_id": "b",
            "content": "hi",
            "type": "task",
            "metadata": {
                "kind": "task",
                "task_id": "t1",
                "context": {
                    "kind": "translation",
                    "source_format": "atomese",
                    "target_format": "metta",
                },
            },
        }
    )
    assert isinstance(message.metadata, TaskMetadata)
    assert isinstance(message.metadata.context, TranslationMetadata)
    assert message.type == MessageType.TASK


def test_malformed_metadata_is_rejected():
    with pytest.raises(ValidationError):
        AgentMessage.model_validate(
            {
                "sender_id": "a",
                "content": "x",
                "type": "response",
                "metadata": {"kind": "task_completed"},
            }
        )
    with pytest.raises(ValidationError):
        AgentMessage.model_validate(
            {
                "sender_id": "a",
                "content": "x",
                "type": "response",
                "metadata": {"kind": "mystery", "task_id": "t"},
            }
        )


def test_metadata_round_trips_through_json():
    original = AgentMessage(
        sender_id="agent",
        receiver_id="orchestrator",
        content="done",
        type=MessageType.RESPONSE,
        metadata=TaskCompletedMetadata(task_id="t1"),
    )
    restored = AgentMessage.model_validate_json(original.model_dump_json())
    assert restored == original


def test_reasoning_metadata_carries_nodes():
    adapter = TypeAdapter(ReasoningMetadata)
    metadata = adapter.validate_python(
        {"nodes": [{"type": "ConceptNode", "name": "cat"}]}
    )
    assert metadata.nodes[0].name == "cat"

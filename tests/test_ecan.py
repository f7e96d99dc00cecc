"""Tests for ECAN attention allocation."""

import pytest

from cogniverse.atomese import node_key
from cogniverse.reasoning.ecan import (
    AFB_THRESHOLD,
    FORGETTING_THRESHOLD,
    ECANEngine,
    ImportanceDiffusion,
)
from cogniverse.schemas import AtomType, AttentionValue, KnowledgeNode


def parent_with_children() -> KnowledgeNode:
    return KnowledgeNode(
        type=AtomType.INHERITANCE_LINK,
        children=[KnowledgeNode.concept("cat"), KnowledgeNode.concept("animal")],
    )


def test_spread_pays_rent_and_feeds_children():
    ecan = ECANEngine()
    parent = parent_with_children()
    ecan.add_node("p", parent)
    ecan.stimulate("p", 80)

    ecan.spread_attention()

    assert ecan.get_attention("p").sti == pytest.approx(80 - 0.01 * 80)
    # Each child receives 80 * 0.1 / 2 = 4, then decays below the focus boundary
    for child in parent.children:
        assert ecan.get_attention(node_key(child)).sti == pytest.approx(4 * 0.95)


def test_children_receive_exact_share_without_decay():
    ecan = ECANEngine(decay_rate=0.0)
    parent = parent_with_children()
    ecan.add_node("p", parent)
    ecan.stimulate("p", 80)

    ecan.spread_attention()

    for child in parent.children:
        assert ecan.get_attention(node_key(child)).sti == pytest.approx(4.0)


def test_children_resolve_to_tracked_ids():
    ecan = ECANEngine(decay_rate=0.0)
    parent = parent_with_children()
    ecan.add_node("p", parent)
    ecan.add_node("cat-id", KnowledgeNode.concept("cat"))
    ecan.stimulate("p", 80)

    ecan.spread_attention()

    assert ecan.get_attention("cat-id").sti == pytest.approx(4.0)
    assert ecan.get_attention(node_key(KnowledgeNode.concept("cat"))) is None


def test_stimulate_caps_and_floors():
    ecan = ECANEngine()
    ecan.stimulate("hot", 500)
    ecan.stimulate("cold", -500)

    assert ecan.get_attention("hot").sti == 100.0
    assert ecan.get_attention("cold").sti == FORGETTING_THRESHOLD


def test_total_sti_stays_within_budget():
    ecan = ECANEngine(max_sti=100)
    for name in ("a", "b", "c"):
        ecan.stimulate(name, 80)

    ecan.spread_attention()

    total = sum(ecan.get_attention(name).sti for name in ("a", "b", "c"))
    assert total <= 100 + 1e-9
    assert ecan.get_statistics().total_sti == pytest.approx(100)
    # Relative importance preserved by uniform scaling
    assert ecan.get_attention("a").sti == pytest.approx(ecan.get_attention("b").sti)


def test_statistics_report_actual_sti_between_ticks():
    ecan = ECANEngine()
    ecan.stimulate("a", 150)
    ecan.stimulate("b", 20)

    stats = ecan.get_statistics()

    assert stats.total_sti == pytest.approx(120)
    assert stats.average_sti == pytest.approx(60)


def test_sti_never_drops_below_floor_over_many_ticks():
    ecan = ECANEngine(decay_rate=0.5)
    ecan.stimulate("n", -50)
    for _ in range(20):
        ecan.spread_attention()
        assert ecan.get_attention("n").sti >= FORGETTING_THRESHOLD


def test_unfocused_nodes_decay_toward_zero():
    ecan = ECANEngine()
    ecan.stimulate("n", 40)
    ecan.spread_attention()
    assert ecan.get_attention("n").sti == pytest.approx(38.0)


def test_update_lti():
    ecan = ECANEngine()
    ecan.stimulate("focused", 80)
    ecan.add_node("idle", KnowledgeNode.concept("idle"), AttentionValue(sti=0, lti=50))

    ecan.update_lti()

    assert ecan.get_attention("focused").lti == pytest.approx(0.1)
    assert ecan.get_attention("idle").lti == pytest.approx(49.5)


def test_focus_and_top_nodes():
    ecan = ECANEngine()
    ecan.stimulate("low", 10)
    ecan.stimulate("mid", AFB_THRESHOLD)
    ecan.stimulate("high", 90)

    assert set(ecan.get_attentional_focus()) == {"mid", "high"}
    assert [node_id for node_id, _ in ecan.get_top_nodes(2)] == ["high", "mid"]

    stats = ecan.get_statistics()
    assert stats.total_nodes == 3
    assert stats.focused_nodes == 2
    assert stats.average_sti == pytest.approx(50.0)


def test_set_parameters_and_clear():
    ecan = ECANEngine()
    ecan.set_parameters(spread_rate=0.5, max_sti=50)
    assert ecan.spread_rate == 0.5
    assert ecan.max_sti == 50
    assert ecan.decay_rate == 0.05

    ecan.stimulate("n", 10)
    ecan.clear()
    assert ecan.get_statistics().total_nodes == 0
    assert ecan.total_sti == 0.0


def test_importance_diffusion():
    ecan = ECANEngine()
    diffusion = ImportanceDiffusion(ecan)
    diffusion.focus_on(["a", "b"], intensity=60)

    assert ecan.get_attention("a").sti == 60
    diffusion.diffuse(steps=1)

    # LTI updated on step 0 while still focused
    assert ecan.get_attention("a").lti == pytest.approx(0.1)
    assert ecan.get_attention("a").sti == pytest.approx(60 * 0.99)

"""
Economic Attention Allocation (ECAN).

Short-term importance (STI) is the attention currency. Each discrete tick:

1. Nodes in the attentional focus (STI >= 50) spread a share of their STI to
   their children and pay rent for staying focused
2. Nodes below the focus boundary decay toward zero, floored at -50
3. If total STI exceeds the budget, every node is scaled down by the same
   factor (relative importance is preserved)

Long-term importance is updated separately by ``update_lti``.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from cogniverse.atomese import node_key
from cogniverse.logging_utils import log_deterministic
from cogniverse.schemas import AttentionStatistics, AttentionValue, KnowledgeNode

# Attentional focus boundary: nodes at or above this STI are "in focus"
AFB_THRESHOLD = 50.0

# Nodes are never forgotten, only clamped here
FORGETTING_THRESHOLD = -50.0

STI_MAX = 100.0
LTI_MAX = 100.0
LTI_GAIN = 0.1
LTI_DECAY = 0.99


class ECANEngine:
    """Attention allocation over a set of tracked knowledge nodes."""

    def __init__(
        self,
        *,
        spread_rate: float = 0.1,
        decay_rate: float = 0.05,
        rent_rate: float = 0.01,
        max_sti: float = 10000.0,
    ) -> None:
        self.spread_rate = spread_rate
        self.decay_rate = decay_rate
        self.rent_rate = rent_rate
        self.max_sti = max_sti

        # Structure (for spreading) and importance are tracked per node id.
        # Ids created by stimulate() alone have no structure and never spread.
        self.nodes: Dict[str, Optional[KnowledgeNode]] = {}
        self.attention: Dict[str, AttentionValue] = {}
        self.total_sti = 0.0

    def add_node(
        self,
        node_id: str,
        node: KnowledgeNode,
        attention: Optional[AttentionValue] = None,
    ) -> None:
        self.nodes[node_id] = node
        if attention is not None:
            self.attention[node_id] = attention
        else:
            self.attention.setdefault(node_id, AttentionValue())

    def stimulate(self, node_id: str, amount: float) -> None:
        """Raise a node's STI (capped at 100), creating it on first stimulation."""
        attention = self._ensure(node_id)
        attention.sti = max(FORGETTING_THRESHOLD, min(STI_MAX, attention.sti + amount))
        self.total_sti += amount

    def spread_attention(self) -> None:
        """Run one tick: spread and rent, decay, then renormalise."""
        for node_id in self.get_attentional_focus():
            attention = self.attention[node_id]
            node = self.nodes.get(node_id)

            if node is not None and node.children:
                share = attention.sti * self.spread_rate / len(node.children)
                for child in node.children:
                    child_attention = self.attention[self._resolve_child(child)]
                    child_attention.sti = min(STI_MAX, child_attention.sti + share)

            # Rent for remaining in focus
            attention.sti -= self.rent_rate * attention.sti

        self._decay_unfocused()
        self._normalize()

    def update_lti(self) -> None:
        """Convert sustained focus into long-term importance."""
        for attention in self.attention.values():
            if attention.sti > AFB_THRESHOLD:
                attention.lti = min(LTI_MAX, attention.lti + LTI_GAIN)
            else:
                attention.lti *= LTI_DECAY

    def get_attentional_focus(self) -> List[str]:
        return [
            node_id
            for node_id, attention in self.attention.items()
            if attention.sti >= AFB_THRESHOLD
        ]

    def get_top_nodes(self, n: int) -> List[Tuple[str, AttentionValue]]:
        ranked = sorted(self.attention.items(), key=lambda item: item[1].sti, reverse=True)
        return ranked[:n]

    def get_attention(self, node_id: str) -> Optional[AttentionValue]:
        return self.attention.get(node_id)

    def get_node(self, node_id: str) -> Optional[KnowledgeNode]:
        return self.nodes.get(node_id)

    def get_statistics(self) -> AttentionStatistics:
        count = len(self.attention)
        average = sum(a.sti for a in self.attention.values()) / count if count else 0.0
        return AttentionStatistics(
            total_nodes=count,
            focused_nodes=len(self.get_attentional_focus()),
            average_sti=average,
            total_sti=sum(a.sti for a in self.attention.values()),
        )

    def set_parameters(
        self,
        *,
        spread_rate: Optional[float] = None,
        decay_rate: Optional[float] = None,
        rent_rate: Optional[float] = None,
        max_sti: Optional[float] = None,
    ) -> None:
        if spread_rate is not None:
            self.spread_rate = spread_rate
        if decay_rate is not None:
            self.decay_rate = decay_rate
        if rent_rate is not None:
            self.rent_rate = rent_rate
        if max_sti is not None:
            self.max_sti = max_sti

    def clear(self) -> None:
        self.nodes.clear()
        self.attention.clear()
        self.total_sti = 0.0

    def _ensure(self, node_id: str) -> AttentionValue:
        if node_id not in self.attention:
            self.attention[node_id] = AttentionValue()
            self.nodes.setdefault(node_id, None)
        return self.attention[node_id]

    def _resolve_child(self, child: KnowledgeNode) -> str:
        """Find the tracked id for ``child``, tracking it if unseen."""
        for node_id, node in self.nodes.items():
            if node is not None and node.matches(child):
                return node_id

        key = node_key(child)
        self.nodes[key] = child
        self._ensure(key)
        return key

    def _decay_unfocused(self) -> None:
        for attention in self.attention.values():
            if attention.sti < AFB_THRESHOLD:
                attention.sti *= 1 - self.decay_rate
                if attention.sti < FORGETTING_THRESHOLD:
                    attention.sti = FORGETTING_THRESHOLD

    def _normalize(self) -> None:
        # The running total is resynchronised with the actual sum so that
        # spreading (which creates STI) is also bounded by the budget.
        self.total_sti = sum(a.sti for a in self.attention.values())
        if self.total_sti > self.max_sti:
            scale = self.max_sti / self.total_sti
            for attention in self.attention.values():
                attention.sti *= scale
            self.total_sti = self.max_sti


class ImportanceDiffusion:
    """Drives an ECANEngine for several ticks."""

    def __init__(self, ecan: ECANEngine, lti_interval: int = 10):
        self.ecan = ecan
        self.lti_interval = lti_interval

    def diffuse(self, steps: int = 10) -> None:
        for step in range(steps):
            self.ecan.spread_attention()
            if step % self.lti_interval == 0:
                self.ecan.update_lti()

        log_deterministic(f"[ECAN] Importance diffusion completed {steps} steps")

    def focus_on(self, node_ids: List[str], intensity: float = 50.0) -> None:
        for node_id in node_ids:
            self.ecan.stimulate(node_id, intensity)

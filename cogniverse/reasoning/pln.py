"""
Probabilistic Logic Networks: forward chaining over implication links.

The chainer keeps a table of knowledge nodes and repeatedly applies the
deduction rule (A->B, B->C => A->C) until a pass derives nothing new or the
iteration cap is reached.

Single-pass-per-iteration semantics:
- Each pass scans a snapshot of the table; facts derived during a pass are
  not matched against until the next pass
- After a pass, new facts join both the result list and the table
- Derivations already present (structural equality) are dropped, so the
  loop reaches a fixpoint instead of re-deriving the same links
"""

from __future__ import annotations

from typing import Dict, List, Optional

from cogniverse.logging_utils import log_deterministic
from cogniverse.schemas import AtomType, KnowledgeNode, ReasoningResult, TruthValue

from .truth import deduction

DEFAULT_MAX_ITERATIONS = 100


def _is_implication(node: KnowledgeNode) -> bool:
    return (
        node.type == AtomType.IMPLICATION_LINK
        and len(node.children) == 2
        and node.truth_value is not None
    )


def _contains(nodes: List[KnowledgeNode], candidate: KnowledgeNode) -> bool:
    return any(candidate.structurally_equal(node) for node in nodes)


class PLNForwardChainer:
    """Forward chainer over a table of string id -> KnowledgeNode."""

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self.max_iterations = max_iterations
        self.knowledge_base: Dict[str, KnowledgeNode] = {}
        self._derived_counter = 0

    def add_node(self, node_id: str, node: KnowledgeNode) -> None:
        self.knowledge_base[node_id] = node

    def get_knowledge_base(self) -> List[KnowledgeNode]:
        return list(self.knowledge_base.values())

    def clear(self) -> None:
        self.knowledge_base.clear()
        self._derived_counter = 0

    def infer(self) -> List[KnowledgeNode]:
        """Run forward chaining and return every newly derived node in order.

        Never raises for lack of derivable facts; an empty list is a valid
        outcome.
        """
        derived: List[KnowledgeNode] = []
        iterations = 0

        while iterations < self.max_iterations:
            new_nodes = self._apply_inference_rules()
            if not new_nodes:
                break

            derived.extend(new_nodes)
            for node in new_nodes:
                self._derived_counter += 1
                self.knowledge_base[f"derived_{self._derived_counter}"] = node
            iterations += 1

        log_deterministic(
            f"[PLN] Inference completed in {iterations} iterations "
            f"({len(derived)} derived)"
        )
        return derived

    def _apply_inference_rules(self) -> List[KnowledgeNode]:
        """One pass of deduction over a snapshot of the table."""
        existing = list(self.knowledge_base.values())
        snapshot = [node for node in existing if _is_implication(node)]
        new_nodes: List[KnowledgeNode] = []

        for first in snapshot:
            for second in snapshot:
                candidate = self._try_deduction(first, second)
                if candidate is None:
                    continue
                if _contains(existing, candidate) or _contains(new_nodes, candidate):
                    continue
                new_nodes.append(candidate)

        return new_nodes

    @staticmethod
    def _try_deduction(first: KnowledgeNode, second: KnowledgeNode) -> Optional[KnowledgeNode]:
        antecedent, middle = first.children
        middle_again, consequent = second.children

        # Matching is shallow: type, name and value of the shared term
        if not middle.matches(middle_again):
            return None

        return KnowledgeNode(
            type=first.type,
            children=[antecedent, consequent],
            truth_value=deduction(first.truth_value, second.truth_value),
        )


class PLNReasoner:
    """Convenience wrapper: load premises, chain, summarise."""

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self.forward_chainer = PLNForwardChainer(max_iterations=max_iterations)

    def reason(self, nodes: List[KnowledgeNode]) -> ReasoningResult:
        """Load ``nodes``, run inference and report the mean derived confidence."""
        for index, node in enumerate(nodes):
            self.forward_chainer.add_node(f"node_{index}", node)

        derived = self.forward_chainer.infer()
        if not derived:
            return ReasoningResult(derived=[], confidence=0.0)

        total = sum(node.truth_value.confidence for node in derived if node.truth_value)
        return ReasoningResult(derived=derived, confidence=total / len(derived))

    def query(self, query_node: KnowledgeNode) -> Optional[TruthValue]:
        """Truth value of the first structurally equal node in the table."""
        for node in self.forward_chainer.get_knowledge_base():
            if node.structurally_equal(query_node):
                return node.truth_value
        return None

    def clear(self) -> None:
        self.forward_chainer.clear()

"""External collaborators consumed by agents.

Agents never talk to a language model or a knowledge server directly; they
are handed objects satisfying the protocols below. Reference in-process
implementations are provided:

- ``SymbolicTranslator``: direct Atomese <-> MeTTa <-> Scheme conversion.
  Natural-language formats need a model-backed translator injected instead.
- ``InMemoryKnowledgeStore``: a local stand-in for a knowledge server that
  keeps Atomese expressions in a list and answers substring queries.
"""

from __future__ import annotations

from typing import Any, List, Protocol

from cogniverse import atomese
from cogniverse.atomese import AtomeseParseError, SExpr
from cogniverse.logging_utils import log_deterministic
from cogniverse.schemas import AtomType, CommandResponse, Format, KnowledgeNode


class TranslationUnavailableError(Exception):
    """Raised when a translator cannot handle a format pair."""

    def __init__(self, source_format: Format, target_format: Format):
        self.source_format = source_format
        self.target_format = target_format
        super().__init__(
            f"No translation from {source_format.value} to {target_format.value}. "
            "Natural-language translation requires a model-backed Translator; "
            "inject one when building the translator agent."
        )


class TranslationError(ValueError):
    """Raised when input cannot be converted between formal representations."""


class Translator(Protocol):
    """Protocol for translation services."""

    async def translate(self, input: str, source_format: Format, target_format: Format) -> str:
        ...


class KnowledgeStoreClient(Protocol):
    """Protocol for knowledge-store access (e.g. a remote atomspace server)."""

    async def query(self, pattern: str) -> CommandResponse:
        ...

    async def execute(self, command: str, mode: str = "atomese") -> CommandResponse:
        ...


# ============================================================================
# Symbolic translation
# ============================================================================


def _label(node: KnowledgeNode) -> str:
    if node.name is not None:
        return node.name
    return atomese.generate(node, include_truth=False)


def atomese_to_metta(node: KnowledgeNode) -> str:
    """Convert a KnowledgeNode into a MeTTa expression.

    InheritanceLink a b -> ``(: a b)``; EvaluationLink pred args -> ``(pred args...)``.
    Anything else falls back to ``(Type name)``.
    """
    if node.type == AtomType.INHERITANCE_LINK and len(node.children) == 2:
        return f"(: {_label(node.children[0])} {_label(node.children[1])})"

    if node.type == AtomType.EVALUATION_LINK and len(node.children) >= 2:
        predicate = node.children[0].name or "predicate"
        arguments: List[KnowledgeNode] = []
        for child in node.children[1:]:
            # (EvaluationLink pred (ListLink a b)) flattens to (pred a b)
            if child.type == AtomType.LIST_LINK:
                arguments.extend(child.children)
            else:
                arguments.append(child)
        return f"({predicate} {' '.join(_label(arg) for arg in arguments)})"

    if node.is_link:
        inner = " ".join(atomese_to_metta(child) for child in node.children)
        return f"({node.type.value} {inner})"
    return f"({node.type.value} {node.name})"


def metta_to_atomese(expr: SExpr) -> KnowledgeNode:
    """Convert a parsed MeTTa expression into a KnowledgeNode.

    ``(: a b)`` -> InheritanceLink; ``(pred args...)`` -> EvaluationLink over a
    ListLink of concepts; a bare symbol -> ConceptNode.
    """
    if isinstance(expr, str):
        return KnowledgeNode.concept(expr.strip('"'))
    if not expr:
        raise TranslationError("Cannot convert empty MeTTa expression '()'")

    head = expr[0]
    if head == ":" and len(expr) == 3:
        return KnowledgeNode(
            type=AtomType.INHERITANCE_LINK,
            children=[metta_to_atomese(expr[1]), metta_to_atomese(expr[2])],
        )

    if not isinstance(head, str):
        raise TranslationError(f"MeTTa expression must start with a symbol: {expr!r}")

    predicate = KnowledgeNode(type=AtomType.PREDICATE_NODE, name=head)
    arguments = [metta_to_atomese(item) for item in expr[1:]]
    if not arguments:
        return predicate
    return KnowledgeNode(
        type=AtomType.EVALUATION_LINK,
        children=[predicate, KnowledgeNode(type=AtomType.LIST_LINK, children=arguments)],
    )


class SymbolicTranslator:
    """Translator for formal representations only."""

    _FORMAL = (Format.ATOMESE, Format.METTA, Format.SCHEME)

    async def translate(self, input: str, source_format: Format, target_format: Format) -> str:
        if source_format not in self._FORMAL or target_format not in self._FORMAL:
            raise TranslationUnavailableError(source_format, target_format)

        try:
            if source_format == Format.METTA:
                node = metta_to_atomese(atomese.read_sexpr(input.strip()))
            else:
                # Atomese is written in Scheme syntax; both parse the same way
                node = atomese.parse(input)
        except AtomeseParseError as exc:
            raise TranslationError(
                f"Failed to read {source_format.value} input: {exc}"
            ) from exc

        if target_format == Format.METTA:
            return atomese_to_metta(node)
        return atomese.generate(node)


# ============================================================================
# In-process knowledge store
# ============================================================================


class InMemoryKnowledgeStore:
    """Local knowledge store answering the KnowledgeStoreClient protocol.

    Commands accepted by ``execute``:
    - ``add <expression>``: store an expression (Atomese is validated)
    - ``list``: return every stored expression
    - ``count``: return the number of stored expressions
    - ``clear``: drop everything

    ``connected`` can be set to False to simulate an unreachable server;
    calls then raise ConnectionError.
    """

    def __init__(self, expressions: List[str] | None = None):
        self.expressions: List[str] = list(expressions or [])
        self.connected = True

    async def query(self, pattern: str) -> CommandResponse:
        self._check_connection()
        needle = pattern.strip().lower()
        matches = [expr for expr in self.expressions if needle in expr.lower()]
        return CommandResponse(success=True, result=matches)

    async def execute(self, command: str, mode: str = "atomese") -> CommandResponse:
        self._check_connection()
        verb, _, argument = command.strip().partition(" ")
        verb = verb.lower()

        if verb == "add":
            return self._add(argument.strip(), mode)
        if verb == "list":
            return CommandResponse(success=True, result=list(self.expressions))
        if verb == "count":
            return CommandResponse(success=True, result=len(self.expressions))
        if verb == "clear":
            self.expressions.clear()
            return CommandResponse(success=True, result=0)

        return CommandResponse(success=False, error=f"Unknown command: {verb or command!r}")

    def _add(self, expression: str, mode: str) -> CommandResponse:
        if not expression:
            return CommandResponse(success=False, error="Nothing to add")

        result: Any = expression
        if mode in ("atomese", "scheme"):
            valid, reason = atomese.validate(expression)
            if not valid:
                return CommandResponse(success=False, error=f"Invalid Atomese: {reason}")
            result = atomese.generate(atomese.parse(expression))

        self.expressions.append(result)
        log_deterministic(f"[KnowledgeStore] Added expression ({len(self.expressions)} stored)")
        return CommandResponse(success=True, result=result)

    def _check_connection(self) -> None:
        if not self.connected:
            raise ConnectionError("Knowledge store is not reachable")

"""Atomese S-expression codec for KnowledgeNode.

Parses expressions such as::

    (InheritanceLink (ConceptNode "cat") (ConceptNode "animal") (stv 0.900 0.800))

into KnowledgeNode trees and renders them back. The generic reader
(``read_sexpr``) is shared with the MeTTa conversion in ``collaborators``.
"""

from __future__ import annotations

from typing import List, Optional, Union

from .schemas import AtomType, KnowledgeNode, TruthValue

SExpr = Union[str, List["SExpr"]]

# Accept "InheritanceLink" as well as the short form "Inheritance"
_TYPE_LOOKUP = {}
for _atom_type in AtomType:
    _TYPE_LOOKUP[_atom_type.value.lower()] = _atom_type
    _short = _atom_type.value.lower().removesuffix("link").removesuffix("node")
    _TYPE_LOOKUP.setdefault(_short, _atom_type)


class AtomeseParseError(ValueError):
    """Raised when an expression is not valid Atomese."""


def tokenize(text: str) -> List[str]:
    """Split an S-expression into parens, quoted strings and bare atoms."""
    tokens: List[str] = []
    current = ""
    in_quotes = False

    for char in text:
        if char == '"':
            current += char
            if in_quotes:
                tokens.append(current)
                current = ""
            in_quotes = not in_quotes
        elif in_quotes:
            current += char
        elif char in "()":
            if current.strip():
                tokens.append(current.strip())
            current = ""
            tokens.append(char)
        elif char.isspace():
            if current.strip():
                tokens.append(current.strip())
            current = ""
        else:
            current += char

    if in_quotes:
        raise AtomeseParseError("Unterminated string literal")
    if current.strip():
        tokens.append(current.strip())
    return tokens


def read_sexpr(text: str) -> SExpr:
    """Read a single S-expression into nested lists of string tokens."""
    tokens = tokenize(text)
    if not tokens:
        raise AtomeseParseError("Empty expression")

    position = 0

    def read() -> SExpr:
        nonlocal position
        if position >= len(tokens):
            raise AtomeseParseError("Unexpected end of expression")
        token = tokens[position]
        position += 1
        if token == ")":
            raise AtomeseParseError("Unexpected ')'")
        if token != "(":
            return token
        items: List[SExpr] = []
        while True:
            if position >= len(tokens):
                raise AtomeseParseError("Missing ')'")
            if tokens[position] == ")":
                position += 1
                return items
            items.append(read())

    expr = read()
    if position != len(tokens):
        raise AtomeseParseError(f"Trailing tokens after expression: {tokens[position:]}")
    return expr


def _unquote(token: str) -> str:
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return token[1:-1]
    return token


def _parse_type(token: SExpr) -> AtomType:
    if not isinstance(token, str):
        raise AtomeseParseError("Expression must start with an atom type")
    atom_type = _TYPE_LOOKUP.get(token.lower())
    if atom_type is None:
        raise AtomeseParseError(f"Unknown atom type: {token}")
    return atom_type


def _parse_truth_value(items: List[SExpr]) -> TruthValue:
    try:
        return TruthValue(strength=float(items[1]), confidence=float(items[2]))
    except (IndexError, TypeError, ValueError) as exc:
        raise AtomeseParseError(f"Malformed truth value: {items}") from exc


def _to_node(expr: SExpr) -> KnowledgeNode:
    if isinstance(expr, str):
        return KnowledgeNode.concept(_unquote(expr))
    if not expr:
        raise AtomeseParseError("Empty expression '()'")

    atom_type = _parse_type(expr[0])
    name: Optional[str] = None
    truth_value: Optional[TruthValue] = None
    children: List[KnowledgeNode] = []

    for item in expr[1:]:
        if isinstance(item, list):
            if item and item[0] == "stv":
                truth_value = _parse_truth_value(item)
            else:
                children.append(_to_node(item))
        elif atom_type.is_link:
            if item.startswith('"') and name is None and not children:
                # Leading quoted string names the link itself
                name = _unquote(item)
            else:
                # Bare atoms inside a link are shorthand for concepts
                children.append(KnowledgeNode.concept(_unquote(item)))
        elif name is None:
            name = _unquote(item)
        else:
            raise AtomeseParseError(f"{atom_type.value} takes a single name, got extra {item!r}")

    try:
        return KnowledgeNode(
            type=atom_type, name=name, children=children, truth_value=truth_value
        )
    except ValueError as exc:
        raise AtomeseParseError(str(exc)) from exc


def parse(atomese: str) -> KnowledgeNode:
    """Parse one Atomese expression. A bare word parses as a ConceptNode."""
    return _to_node(read_sexpr(atomese.strip()))


def parse_many(text: str) -> List[KnowledgeNode]:
    """Parse a sequence of top-level Atomese expressions."""
    tokens = tokenize(text)
    expressions: List[str] = []
    depth = 0
    start = 0
    for index, token in enumerate(tokens):
        if token == "(":
            if depth == 0:
                start = index
            depth += 1
        elif token == ")":
            depth -= 1
            if depth < 0:
                raise AtomeseParseError("Unexpected ')'")
            if depth == 0:
                expressions.append(" ".join(tokens[start : index + 1]))
        elif depth == 0:
            expressions.append(token)
    if depth != 0:
        raise AtomeseParseError("Missing ')'")
    return [parse(expression) for expression in expressions]


def _format_truth_value(truth_value: Optional[TruthValue]) -> str:
    if truth_value is None:
        return ""
    return f" (stv {truth_value.strength:.3f} {truth_value.confidence:.3f})"


def generate(node: KnowledgeNode, *, include_truth: bool = True) -> str:
    """Render a KnowledgeNode as an Atomese S-expression."""
    truth = _format_truth_value(node.truth_value) if include_truth else ""
    if not node.children:
        return f'({node.type.value} "{node.name or ""}"{truth})'

    rendered = " ".join(generate(child, include_truth=include_truth) for child in node.children)
    name = f' "{node.name}"' if node.name else ""
    return f"({node.type.value}{name} {rendered}{truth})"


def node_key(node: KnowledgeNode) -> str:
    """Stable identifier for a node's structure (truth value excluded)."""
    return generate(node, include_truth=False)


def validate(atomese: str) -> tuple[bool, Optional[str]]:
    """Return ``(True, None)`` for valid Atomese, otherwise ``(False, reason)``."""
    try:
        parse(atomese)
    except AtomeseParseError as exc:
        return False, str(exc)
    return True, None


__all__ = [
    "AtomeseParseError",
    "tokenize",
    "read_sexpr",
    "parse",
    "parse_many",
    "generate",
    "node_key",
    "validate",
]

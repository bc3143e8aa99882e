"""
Symbol Classifier

Walks one function or method and splits the project symbols it references
into callables and named types, in pre-order encounter order.
"""

import ast
import logging
from dataclasses import dataclass, field
from enum import Enum

from call_tracer.tracer.database import ProgramDatabase, terminal_name
from call_tracer.tracer.models import AnalysisTarget, Symbol, SymbolKind
from call_tracer.tracer.resolver import COMPREHENSION_NODES, ScopeResolver

logger = logging.getLogger("call_tracer.classifier")

_ANNOTATION_FIELDS = {"annotation", "returns"}


class NodeKind(Enum):
    """Closed set of syntax node kinds the walk distinguishes."""

    IDENTIFIER = "identifier"
    CALL = "call"
    TYPE_REFERENCE = "type_reference"
    BLOCK = "block"
    DECLARATION = "declaration"
    OTHER = "other"


def node_kind(node: ast.AST, in_annotation: bool = False) -> NodeKind:
    """Assign a syntax node to exactly one NodeKind."""
    if isinstance(node, (ast.Name, ast.Attribute)):
        return NodeKind.IDENTIFIER
    if isinstance(node, ast.Call):
        return NodeKind.CALL
    if in_annotation and isinstance(node, ast.Constant) and isinstance(node.value, str):
        return NodeKind.TYPE_REFERENCE
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)):
        return NodeKind.DECLARATION
    if isinstance(node, ast.stmt) and hasattr(node, "body"):
        return NodeKind.BLOCK
    return NodeKind.OTHER


@dataclass
class Classification:
    """Project symbols referenced by one function, duplicates included."""

    callables: list[Symbol] = field(default_factory=list)
    types: list[Symbol] = field(default_factory=list)


def _fields(node: ast.AST, in_annotation: bool) -> list[tuple[str, ast.AST, bool]]:
    """Child nodes in source order with their field name, each flagged if it sits in an annotation."""
    form = terminal_name(node.value) if isinstance(node, ast.Subscript) else None
    fields = []
    for name, value in ast.iter_fields(node):
        flag = in_annotation or name in _ANNOTATION_FIELDS
        if form == "Literal" and name == "slice":
            flag = False
        if form == "Annotated" and name == "slice" and isinstance(value, ast.Tuple) and value.elts:
            # only the first element is a type, the rest is metadata
            fields.append((name, value.elts[0], flag))
            fields.extend((name, item, False) for item in value.elts[1:])
            continue
        items = value if isinstance(value, list) else [value]
        for item in items:
            if isinstance(item, ast.AST) and not isinstance(item, ast.expr_context):
                fields.append((name, item, flag))
    return fields


def _children(node: ast.AST, in_annotation: bool) -> list[tuple[ast.AST, bool]]:
    """Child nodes in source order, each flagged if it sits in an annotation."""
    return [(item, flag) for _, item, flag in _fields(node, in_annotation)]


def _scoped_children(
    node: ast.AST, in_annotation: bool, resolver: ScopeResolver,
) -> list[tuple[ast.AST, bool, ScopeResolver]]:
    """
    Children of a function, lambda or comprehension, each paired with the
    scope it is evaluated in.

    Decorators, defaults and annotations belong to the enclosing scope, as
    does the first iterable of a comprehension.  Everything else is resolved
    in the node's own scope.
    """
    inner = resolver.enter(node)
    if not isinstance(node, COMPREHENSION_NODES):
        return [
            (item, flag, inner if name == "body" else resolver)
            for name, item, flag in _fields(node, in_annotation)
        ]

    children = []
    for name, item, flag in _fields(node, in_annotation):
        if name != "generators":
            children.append((item, flag, inner))
            continue
        for field, value, value_flag in _fields(item, flag):
            outer_iter = field == "iter" and item is node.generators[0]
            children.append((value, value_flag, resolver if outer_iter else inner))
    return children


def _signature_and_body(
    node: ast.FunctionDef | ast.AsyncFunctionDef, outer: ScopeResolver, inner: ScopeResolver,
) -> list[tuple[ast.AST, bool, ScopeResolver]]:
    """Type parameters, parameters, return annotation and body statements."""
    children = [(param, True, outer) for param in getattr(node, "type_params", [])]
    children.append((node.args, False, outer))
    if node.returns is not None:
        children.append((node.returns, True, outer))
    children.extend((stmt, False, inner) for stmt in node.body)
    return children


def _parse_forward_reference(text: str) -> ast.AST | None:
    try:
        return ast.parse(text.strip(), mode="eval").body
    except SyntaxError:
        logger.debug("Ignoring unparsable string annotation %r", text)
        return None


def classify(
    target: AnalysisTarget, db: ProgramDatabase, scope: frozenset[str],
) -> Classification:
    """
    Collect the project callables and named types a target references.

    Every Name/Attribute in load context is resolved through the target's
    scope; unresolvable names (builtins, locals, attributes of values of
    unknown type) are skipped, as is anything whose module is not in scope.
    """
    result = Classification()
    body_scope = ScopeResolver.for_target(db, target)
    signature_scope = ScopeResolver(db, target.module, body_scope.class_symbol)
    stack = list(reversed(_signature_and_body(target.node, signature_scope, body_scope)))

    while stack:
        node, in_annotation, resolver = stack.pop()
        kind = node_kind(node, in_annotation)

        if kind is NodeKind.IDENTIFIER:
            if isinstance(node.ctx, ast.Load):
                _record(resolver.resolve(node), scope, result)
            children = _children(node, in_annotation)
        elif kind is NodeKind.TYPE_REFERENCE:
            expr = _parse_forward_reference(node.value)
            children = [(expr, True)] if expr is not None else []
        elif kind is NodeKind.DECLARATION:
            if not isinstance(node, ast.ClassDef):
                stack.extend(reversed(_scoped_children(node, in_annotation, resolver)))
                continue
            children = _children(node, in_annotation)
        elif kind in (NodeKind.CALL, NodeKind.BLOCK, NodeKind.OTHER):
            if isinstance(node, COMPREHENSION_NODES):
                stack.extend(reversed(_scoped_children(node, in_annotation, resolver)))
                continue
            children = _children(node, in_annotation)
        else:
            raise AssertionError(f"unhandled node kind: {kind}")

        stack.extend((child, flag, resolver) for child, flag in reversed(children))

    return result


def _record(symbol: Symbol | None, scope: frozenset[str], result: Classification) -> None:
    if symbol is None or symbol.module not in scope:
        return
    if symbol.kind is SymbolKind.CALLABLE:
        result.callables.append(symbol)
    elif symbol.kind is SymbolKind.NAMED_TYPE:
        result.types.append(symbol)

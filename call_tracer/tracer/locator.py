"""
Source Locator

Maps a declaration position back to the syntax node declared there.
Only the module that owns the position's file is searched.
"""

import ast
import logging

from call_tracer.shared.exceptions import NodeNotFoundError
from call_tracer.tracer.database import (
    TRY_NODES,
    TYPE_ALIAS_NODE,
    ModuleInfo,
    ProgramDatabase,
    assigned_names,
    flatten_blocks,
    is_type_alias,
    name_position,
)
from call_tracer.tracer.models import AnalysisTarget, Position, Symbol

logger = logging.getLogger("call_tracer.locator")

_FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)
_BLOCK_NODES = (ast.If, ast.ExceptHandler) + TRY_NODES
_CONTAINER_NODES = (ast.stmt, ast.excepthandler, ast.match_case)


def declaration_positions(node: ast.AST, module: ModuleInfo) -> list[Position]:
    """Positions of the names a statement declares."""
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        return [name_position(node, module)]
    if TYPE_ALIAS_NODE is not None and isinstance(node, TYPE_ALIAS_NODE):
        return [name_position(node, module)]
    if isinstance(node, (ast.Assign, ast.AnnAssign)):
        return [name_position(target, module) for target in assigned_names(node)]
    return []


def _is_type_declaration(stmt: ast.stmt) -> bool:
    return isinstance(stmt, (ast.ClassDef, ast.Pass)) or is_type_alias(stmt)


def _find_at(
    module: ModuleInfo, position: Position,
) -> tuple[ast.AST | None, dict[ast.AST, ast.AST]]:
    """Walk the module's statements for one declared at position."""
    parents: dict[ast.AST, ast.AST] = {}
    stack = [module.tree]
    while stack:
        node = stack.pop()
        if position in declaration_positions(node, module):
            return node, parents
        for child in ast.iter_child_nodes(node):
            if isinstance(child, _CONTAINER_NODES):
                parents[child] = node
                stack.append(child)
    return None, parents


def _enclosing_type_block(
    node: ast.AST, parents: dict[ast.AST, ast.AST], module: ModuleInfo,
) -> ast.AST:
    """
    The module-level if/try block around a type declaration, when every
    branch of that block only declares types.  Otherwise the node itself.
    """
    block = None
    parent = parents.get(node)
    while isinstance(parent, _BLOCK_NODES):
        block = parent
        parent = parents.get(parent)
    if block is None or parent is not module.tree:
        return node

    statements = [
        stmt for stmt in flatten_blocks([block])
        if not isinstance(stmt, (ast.If,) + TRY_NODES)
    ]
    if statements and all(_is_type_declaration(stmt) for stmt in statements):
        return block
    return node


def locate_in_module(module: ModuleInfo, position: Position) -> ast.AST:
    """Find the declaration whose name token sits at position."""
    node, parents = _find_at(module, position)
    if node is None:
        raise NodeNotFoundError(f"no declaration at {position}")
    if isinstance(node, _FUNCTION_NODES):
        return node
    return _enclosing_type_block(node, parents, module)


def locate_declaration(db: ProgramDatabase, position: Position) -> ast.AST:
    """Find the declaration node at position, searching only its own file."""
    module = db.module_for_file(position.file)
    if module is None:
        raise NodeNotFoundError(f"file '{position.file}' is not part of the loaded project")
    return locate_in_module(module, position)


def locate_function(db: ProgramDatabase, symbol: Symbol) -> AnalysisTarget:
    """Locate a callable's declaration and wrap it as an analysis target."""
    if symbol.position is None:
        raise NodeNotFoundError(f"no declaration position recorded for {symbol.qualified_name}")
    node = locate_declaration(db, symbol.position)
    if not isinstance(node, _FUNCTION_NODES):
        raise NodeNotFoundError(
            f"declaration of {symbol.qualified_name} at {symbol.position} is not a function"
        )
    return AnalysisTarget(
        module=db.module_for_file(symbol.position.file),
        node=node,
        qualified_name=symbol.qualified_name,
    )

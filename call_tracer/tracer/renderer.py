"""
Snippet Renderer

Turns a located declaration back into source text.  Two styles:

  - canonical: ast.unparse of exactly the node's subtree.  Comments and
    original formatting are dropped; output is deterministic.
  - verbatim: the node's own source lines (decorators included), dedented.
"""

import ast
import logging
import textwrap
from enum import Enum

from call_tracer.shared.exceptions import InvalidRequestError, NodeNotFoundError, RenderError
from call_tracer.tracer.database import ModuleInfo, ProgramDatabase, name_position
from call_tracer.tracer.locator import locate_declaration, locate_in_module
from call_tracer.tracer.models import AnalysisTarget, Symbol

logger = logging.getLogger("call_tracer.renderer")


class SnippetStyle(str, Enum):
    CANONICAL = "canonical"
    VERBATIM = "verbatim"


def parse_style(value: str | SnippetStyle) -> SnippetStyle:
    try:
        return SnippetStyle(value)
    except ValueError:
        choices = ", ".join(s.value for s in SnippetStyle)
        raise InvalidRequestError(f"unknown snippet style '{value}' (expected one of: {choices})") from None


def extract_source(node: ast.AST, source_lines: list[str]) -> str:
    """
    Extract source code for a node from the file's lines.
    Includes decorator lines if the node has a decorator_list.
    """
    if not hasattr(node, "lineno"):
        raise RenderError(f"{type(node).__name__} node carries no source location")
    decorator_list = getattr(node, "decorator_list", [])
    if decorator_list:
        start = decorator_list[0].lineno - 1  # 0-indexed
    else:
        start = node.lineno - 1
    end = getattr(node, "end_lineno", None) or node.lineno
    lines = source_lines[start:end]
    if not lines:
        raise RenderError(f"lines {start + 1}-{end} are outside the file")
    return textwrap.dedent("\n".join(lines))


def render_node(
    node: ast.AST,
    module: ModuleInfo | None = None,
    style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> str:
    """Render one declaration node in the requested style."""
    style = parse_style(style)
    if style is SnippetStyle.VERBATIM:
        if module is None:
            raise RenderError("verbatim rendering needs the owning module")
        return extract_source(node, module.lines)
    try:
        return ast.unparse(node)
    except (AttributeError, TypeError, ValueError, RecursionError) as e:
        raise RenderError(f"could not unparse {type(node).__name__} node: {e}") from e


def render_symbol(
    db: ProgramDatabase, symbol: Symbol, style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> str:
    """Locate a symbol's declaration and render it."""
    if symbol.position is None:
        raise NodeNotFoundError(f"no declaration position recorded for {symbol.qualified_name}")
    node = locate_declaration(db, symbol.position)
    return render_node(node, db.module_for_file(symbol.position.file), style)


def render_target(
    target: AnalysisTarget, style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> str:
    """Re-locate a target inside its own module and render it."""
    position = name_position(target.node, target.module)
    node = locate_in_module(target.module, position)
    return render_node(node, target.module, style)

"""
Result Aggregator / Report Builder

Turns a TraversalResult into name lists, the plain-text analysis report,
or a JSON-ready dict carrying the same content.
"""

import logging
from dataclasses import dataclass
from itertools import chain

from call_tracer.shared.exceptions import NodeNotFoundError, RenderError
from call_tracer.tracer.database import ProgramDatabase
from call_tracer.tracer.models import AnalysisTarget, Symbol, TraversalResult
from call_tracer.tracer.renderer import SnippetStyle, render_symbol, render_target

logger = logging.getLogger("call_tracer.report")

SEPARATOR = "// " + "-" * 50
SOURCE_ERROR = "// Error getting source: {reason}"


@dataclass
class DependencySnippet:
    """Rendered source (or the reason it is missing) for one dependency."""

    symbol: Symbol
    file: str
    snippet: str | None = None
    error: str | None = None

    @property
    def text(self) -> str:
        if self.snippet is not None:
            return self.snippet
        return SOURCE_ERROR.format(reason=self.error)

    def to_dict(self) -> dict:
        position = self.symbol.position
        return {
            "qualified_name": self.symbol.qualified_name,
            "kind": self.symbol.kind.value,
            "file": self.file,
            "line": position.line if position else None,
            "snippet": self.snippet,
            "error": self.error,
        }


def _defining_file(db: ProgramDatabase, symbol: Symbol) -> str:
    if symbol.position is None:
        return ""
    return db.absolute_path(symbol.position.file)


def collect_snippets(
    db: ProgramDatabase,
    result: TraversalResult,
    style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> list[DependencySnippet]:
    """Render every dependency: callables first, then types, in discovery order."""
    snippets = []
    for symbol in chain(result.called_funcs.values(), result.referenced_types.values()):
        file = _defining_file(db, symbol)
        try:
            snippet = render_symbol(db, symbol, style)
        except (NodeNotFoundError, RenderError) as e:
            logger.warning("Could not get source for %s: %s", symbol.qualified_name, e.reason)
            snippets.append(DependencySnippet(symbol, file, error=e.reason))
            continue
        snippets.append(DependencySnippet(symbol, file, snippet=snippet))
    return snippets


def _target_source(
    target: AnalysisTarget, style: str | SnippetStyle,
) -> tuple[str | None, str | None]:
    try:
        return render_target(target, style), None
    except (NodeNotFoundError, RenderError) as e:
        logger.warning("Could not get source for target %s: %s", target.qualified_name, e.reason)
        return None, e.reason


def _name_lines(names: list[str]) -> list[str]:
    if not names:
        return ["- None\n"]
    return [f"- {name}\n" for name in names]


def build_text_report(
    target: AnalysisTarget,
    origin_file: str,
    max_depth: int,
    result: TraversalResult,
    snippets: list[DependencySnippet],
    style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> str:
    """Assemble the plain-text analysis report."""
    parts = [
        f"Analysis for Function: {target.name} (depth={max_depth})\n",
        f"Defined in: {origin_file}\n",
        "\n--- Target Function Source Code ---\n",
    ]

    source, error = _target_source(target, style)
    if source is not None:
        parts.append(source + "\n")
    else:
        parts.append(SOURCE_ERROR.format(reason=error) + "\n")

    parts.append("\n--- Summary of Dependencies ---\n")
    parts.append("Called Functions/Methods:\n")
    parts.extend(_name_lines(result.called_names()))
    parts.append("\nReferenced Types:\n")
    parts.extend(_name_lines(result.type_names()))

    parts.append("\n--- Code Snippets of Dependencies ---\n")
    for entry in snippets:
        parts.append(f"\n// Source for: {entry.symbol.qualified_name}\n")
        parts.append(f"// Defined in: {entry.file}\n")
        parts.append(SEPARATOR + "\n")
        parts.append(entry.text + "\n")

    return "".join(parts)


def build_report_data(
    target: AnalysisTarget,
    origin_file: str,
    max_depth: int,
    result: TraversalResult,
    snippets: list[DependencySnippet],
    style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> dict:
    """The report as a JSON-serialisable dict."""
    source, error = _target_source(target, style)
    return {
        "target": target.name,
        "qualified_name": target.qualified_name,
        "depth": max_depth,
        "file": origin_file,
        "source": source,
        "source_error": error,
        "called_funcs": result.called_names(),
        "referenced_types": result.type_names(),
        "dependencies": [entry.to_dict() for entry in snippets],
    }

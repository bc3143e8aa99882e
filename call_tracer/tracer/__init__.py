"""Dependency tracing over a loaded Python project."""

from call_tracer.tracer.analysis import (
    analyze,
    analyze_data,
    extract_called_funcs,
    extract_referenced_types,
    find_target,
    get_declaration_source,
    open_target,
)
from call_tracer.tracer.database import ProgramDatabase, load_project
from call_tracer.tracer.models import AnalysisTarget, Position, Symbol, SymbolKind, TraversalResult
from call_tracer.tracer.renderer import SnippetStyle
from call_tracer.tracer.scheduler import DependencyTracer, trace_dependencies

__all__ = [
    "AnalysisTarget",
    "DependencyTracer",
    "Position",
    "ProgramDatabase",
    "SnippetStyle",
    "Symbol",
    "SymbolKind",
    "TraversalResult",
    "analyze",
    "analyze_data",
    "extract_called_funcs",
    "extract_referenced_types",
    "find_target",
    "get_declaration_source",
    "load_project",
    "open_target",
    "trace_dependencies",
]

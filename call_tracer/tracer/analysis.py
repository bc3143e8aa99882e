"""
Core entry points

What the CLI, the MCP server and the HTTP gateway call: load a project,
find a target function, trace it, and render the results.
"""

import logging
from pathlib import Path

from call_tracer.shared.config import BaseTracerSettings
from call_tracer.shared.exceptions import InvalidRequestError, TargetNotFoundError
from call_tracer.tracer.database import ModuleInfo, ProgramDatabase, load_project
from call_tracer.tracer.models import AnalysisTarget, FunctionNode, SymbolKind
from call_tracer.tracer.renderer import SnippetStyle, parse_style, render_target
from call_tracer.tracer.report import build_report_data, build_text_report, collect_snippets
from call_tracer.tracer.scheduler import check_depth, trace_dependencies

logger = logging.getLogger("call_tracer.analysis")


def _find_function(module: ModuleInfo, function_name: str) -> tuple[FunctionNode | None, str]:
    """
    Look a function up by 'func', 'Class.method', or a bare method name.
    A bare method name matches the first method of that name in source order.
    """
    declaration = module.declarations.get(function_name)
    if declaration is not None and declaration.symbol.kind is SymbolKind.CALLABLE:
        return declaration.node, declaration.symbol.qualified_name

    for local_name, declaration in module.declarations.items():
        if declaration.symbol.kind is not SymbolKind.CALLABLE:
            continue
        if local_name.rsplit(".", 1)[-1] == function_name:
            return declaration.node, declaration.symbol.qualified_name
    return None, ""


def find_target(db: ProgramDatabase, file_path: str | Path, function_name: str) -> AnalysisTarget:
    """
    Find the declaration of function_name in file_path.

    Raises:
        TargetNotFoundError: the file is not part of the project or holds
            no function of that name.
    """
    module = db.module_for_file(file_path)
    if module is not None:
        node, qualified_name = _find_function(module, function_name)
        if node is not None:
            return AnalysisTarget(module=module, node=node, qualified_name=qualified_name)

    message = f"function '{function_name}' not found in file '{file_path}'"
    issue = db.error_for(file_path)
    if issue is not None:
        message += f" (file failed to parse: {issue.message})"
    raise TargetNotFoundError(message)


def open_target(
    project: str,
    file: str,
    func: str,
    settings: BaseTracerSettings | None = None,
    *,
    depth: int | None = None,
    style: str | SnippetStyle | None = None,
) -> tuple[ProgramDatabase, AnalysisTarget]:
    """
    Validate caller input, load the project and resolve the target.

    depth and style, when given, are checked before anything is loaded so
    a malformed request never touches the file system.
    """
    for name, value in (("project", project), ("file", file), ("func", func)):
        if not value:
            raise InvalidRequestError(f'required argument "{name}" not found')
    if depth is not None:
        check_depth(depth)
    if style is not None:
        parse_style(style)

    db = load_project(project, settings)
    target = find_target(db, file, func)
    return db, target


def analyze(
    target: AnalysisTarget,
    origin_file: str,
    max_depth: int,
    db: ProgramDatabase,
    style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> str:
    """Trace target and return the full text report."""
    style = parse_style(style)
    result = trace_dependencies(target, max_depth, db)
    snippets = collect_snippets(db, result, style)
    return build_text_report(target, origin_file, max_depth, result, snippets, style)


def analyze_data(
    target: AnalysisTarget,
    origin_file: str,
    max_depth: int,
    db: ProgramDatabase,
    style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> dict:
    """Trace target and return the report as a JSON-ready dict."""
    style = parse_style(style)
    result = trace_dependencies(target, max_depth, db)
    snippets = collect_snippets(db, result, style)
    return build_report_data(target, origin_file, max_depth, result, snippets, style)


def extract_called_funcs(target: AnalysisTarget, max_depth: int, db: ProgramDatabase) -> list[str]:
    """Qualified names of every callable reachable within max_depth hops."""
    return trace_dependencies(target, max_depth, db).called_names()


def extract_referenced_types(target: AnalysisTarget, max_depth: int, db: ProgramDatabase) -> list[str]:
    """Qualified names of every named type referenced within max_depth hops."""
    return trace_dependencies(target, max_depth, db).type_names()


def get_declaration_source(
    target: AnalysisTarget, style: str | SnippetStyle = SnippetStyle.CANONICAL,
) -> str:
    """Source snippet of the target's own declaration."""
    return render_target(target, style)

"""
Call Tracer — MCP Server

Exposes the dependency tracer as five read-only MCP tools.  Every call
loads the project afresh, so each request owns its own database and
traversal state.

MCP Tools:
  - full_report: Text report of everything a function depends on
  - func_code: Source of the function itself
  - ref_types: Named types referenced within a hop bound
  - called_funcs: Functions/methods called within a hop bound
  - get_snippet: Alias of func_code

Run as:  call-tracer-server --mode stdio
         call-tracer-server --mode sse --port 8080 --path /mcp/sse
"""

import argparse
import json
import logging

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.transport_security import TransportSecuritySettings

from call_tracer.server.config import ServerSettings
from call_tracer.shared.exceptions import (
    InvalidRequestError,
    ProjectLoadError,
    TargetNotFoundError,
    TracerError,
)
from call_tracer.shared.logging import generate_request_id, setup_logging
from call_tracer.tracer import (
    AnalysisTarget,
    ProgramDatabase,
    analyze,
    extract_called_funcs,
    extract_referenced_types,
    find_target,
    get_declaration_source,
    load_project,
)
from call_tracer.tracer.scheduler import check_depth

logger = setup_logging("call_tracer.server", level="INFO")

# ─── Shared resources (lazy init) ─────────────────────────

mcp = FastMCP("CallTracer")

_settings: ServerSettings | None = None


def _get_settings() -> ServerSettings:
    """Lazy-initialise settings from environment variables."""
    global _settings
    if _settings is None:
        _settings = ServerSettings()
    return _settings


def _require(**arguments: str) -> None:
    for name, value in arguments.items():
        if not value:
            raise ToolError(f'required argument "{name}" not found')


def _check_depth(depth: int, failure: str) -> None:
    """Reject a negative depth before the project is loaded."""
    try:
        check_depth(depth)
    except InvalidRequestError as e:
        raise ToolError(f"{failure}: {e.reason}") from e


def _open(project: str, file: str, func: str) -> tuple[ProgramDatabase, AnalysisTarget]:
    """Load the project and find the target, mapping failures to tool errors."""
    try:
        db = load_project(project, _get_settings())
    except ProjectLoadError as e:
        raise ToolError(f"Failed to load project: {e.reason}") from e
    try:
        target = find_target(db, file, func)
    except TargetNotFoundError as e:
        raise ToolError(f"Failed to find target: {e.reason}") from e
    return db, target


def _source_of(tool: str, project: str, file: str, func: str) -> str:
    request_id = generate_request_id()
    logger.info("[%s] %s INPUT  project=%r, file=%r, func=%r", tool, request_id, project, file, func)
    _require(project=project, file=file, func=func)
    _, target = _open(project, file, func)
    try:
        snippet = get_declaration_source(target, _get_settings().snippet_style)
    except TracerError as e:
        raise ToolError(f"Failed to get function code: {e.reason}") from e
    logger.info("[%s] %s OUTPUT %d chars", tool, request_id, len(snippet))
    return snippet


# ─── Tool 1 ──────────────────────────────────────────────


@mcp.tool()
def full_report(project: str, file: str, func: str, depth: int) -> str:
    """Full dependency report for one function.

    Traces every function/method the target calls and every named type it
    references, following calls up to *depth* hops, and returns a text
    report: the target's source, the dependency lists, and the source of
    each dependency.

    Args:
        project: Path to the project root directory.
        file: File defining the function, relative to the project root
              (e.g. "pkg/service.py") or absolute.
        func: Function name, "Class.method", or a bare method name.
        depth: Hops to follow. 0 = only the target's direct references.
    """
    request_id = generate_request_id()
    logger.info(
        "[full_report] %s INPUT  project=%r, file=%r, func=%r, depth=%r",
        request_id, project, file, func, depth,
    )
    _require(project=project, file=file, func=func)
    _check_depth(depth, "Failed to analyze dependencies")
    db, target = _open(project, file, func)
    try:
        report = analyze(target, file, depth, db, _get_settings().snippet_style)
    except TracerError as e:
        raise ToolError(f"Failed to analyze dependencies: {e.reason}") from e
    logger.info("[full_report] %s OUTPUT %d chars", request_id, len(report))
    return report


# ─── Tool 2 ──────────────────────────────────────────────


@mcp.tool()
def func_code(project: str, file: str, func: str) -> str:
    """Source code of one function.

    Args:
        project: Path to the project root directory.
        file: File defining the function, relative to the project root or absolute.
        func: Function name, "Class.method", or a bare method name.
    """
    return _source_of("func_code", project, file, func)


# ─── Tool 3 ──────────────────────────────────────────────


@mcp.tool()
def ref_types(project: str, file: str, func: str, depth: int | None = None) -> str:
    """Named types (classes, type aliases) a function references.

    Returns a JSON list of fully qualified type names, in the order they
    were first encountered.

    Args:
        project: Path to the project root directory.
        file: File defining the function, relative to the project root or absolute.
        func: Function name, "Class.method", or a bare method name.
        depth: Hops of calls to follow (default 3).
    """
    request_id = generate_request_id()
    if depth is None:
        depth = _get_settings().default_depth
    logger.info(
        "[ref_types] %s INPUT  project=%r, file=%r, func=%r, depth=%d",
        request_id, project, file, func, depth,
    )
    _require(project=project, file=file, func=func)
    _check_depth(depth, "Failed to extract types")
    db, target = _open(project, file, func)
    try:
        names = extract_referenced_types(target, depth, db)
    except TracerError as e:
        raise ToolError(f"Failed to extract types: {e.reason}") from e
    logger.info("[ref_types] %s OUTPUT %d types", request_id, len(names))
    return json.dumps(names)


# ─── Tool 4 ──────────────────────────────────────────────


@mcp.tool()
def called_funcs(project: str, file: str, func: str, depth: int | None = None) -> str:
    """Functions and methods a function calls, directly or transitively.

    Returns a JSON list of fully qualified names, in the order they were
    first encountered.  Only code inside the project is reported.

    Args:
        project: Path to the project root directory.
        file: File defining the function, relative to the project root or absolute.
        func: Function name, "Class.method", or a bare method name.
        depth: Hops of calls to follow (default 3).
    """
    request_id = generate_request_id()
    if depth is None:
        depth = _get_settings().default_depth
    logger.info(
        "[called_funcs] %s INPUT  project=%r, file=%r, func=%r, depth=%d",
        request_id, project, file, func, depth,
    )
    _require(project=project, file=file, func=func)
    _check_depth(depth, "Failed to extract called functions")
    db, target = _open(project, file, func)
    try:
        names = extract_called_funcs(target, depth, db)
    except TracerError as e:
        raise ToolError(f"Failed to extract called functions: {e.reason}") from e
    logger.info("[called_funcs] %s OUTPUT %d functions", request_id, len(names))
    return json.dumps(names)


# ─── Tool 5 ──────────────────────────────────────────────


@mcp.tool()
def get_snippet(project: str, file: str, func: str) -> str:
    """Source code of one function (same as func_code).

    Args:
        project: Path to the project root directory.
        file: File defining the function, relative to the project root or absolute.
        func: Function name, "Class.method", or a bare method name.
    """
    return _source_of("get_snippet", project, file, func)


# ─── Entry point ──────────────────────────────────────────


def transport_security_for(settings: ServerSettings) -> TransportSecuritySettings:
    """Host and origin checks applied to SSE connections."""
    return TransportSecuritySettings(
        enable_dns_rebinding_protection=settings.dns_rebinding_protection,
        allowed_hosts=list(settings.allowed_hosts),
        allowed_origins=["*"],
    )


def message_path_for(sse_path: str) -> str:
    """'/mcp/sse' -> '/mcp/message'; paths without '/sse' get '/message' appended."""
    message_path = sse_path.replace("/sse", "/message", 1)
    if message_path == sse_path:
        message_path = sse_path.rstrip("/") + "/message"
    return message_path


def main(argv: list[str] | None = None) -> None:
    settings = _get_settings()
    parser = argparse.ArgumentParser(
        prog="call-tracer-server",
        description="MCP server exposing the call tracer as tools.",
    )
    parser.add_argument("--mode", choices=["stdio", "sse"], default=settings.transport,
                        help="Transport mode: stdio or sse")
    parser.add_argument("--host", default=settings.host, help="Listen host for SSE")
    parser.add_argument("--port", type=int, default=settings.port, help="Listen port for SSE")
    parser.add_argument("--path", default=settings.sse_path, help="HTTP path for SSE connections")
    args = parser.parse_args(argv)

    logging.getLogger().setLevel(settings.log_level.upper())

    if args.mode == "stdio":
        logger.info("Starting Call Tracer MCP server (stdio transport)")
        mcp.run(transport="stdio")
        return

    import uvicorn

    mcp.settings.sse_path = args.path
    mcp.settings.message_path = message_path_for(args.path)
    mcp.settings.transport_security = transport_security_for(settings)
    logger.info(
        "Starting Call Tracer MCP server (SSE transport on %s:%d, SSE: %s, Message: %s)",
        args.host, args.port, mcp.settings.sse_path, mcp.settings.message_path,
    )
    uvicorn.run(mcp.sse_app(), host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()

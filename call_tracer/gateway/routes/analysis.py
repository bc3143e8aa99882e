"""
Analysis routes — POST /api/analysis/{report,called-funcs,ref-types,snippet}.

Each request loads the project on its own; endpoints are plain functions
so FastAPI runs them in its worker thread pool.
"""

from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from call_tracer.gateway.config import GatewaySettings
from call_tracer.shared.exceptions import (
    InvalidRequestError,
    NodeNotFoundError,
    ProjectLoadError,
    RenderError,
    TargetNotFoundError,
    TracerError,
)
from call_tracer.shared.logging import generate_request_id, setup_logging
from call_tracer.tracer import (
    analyze,
    analyze_data,
    extract_called_funcs,
    extract_referenced_types,
    get_declaration_source,
    open_target,
)

logger = setup_logging("call_tracer.gateway.analysis", level="INFO")

router = APIRouter()

_settings: GatewaySettings | None = None

_STATUS_CODES: dict[type[TracerError], int] = {
    ProjectLoadError: 400,
    TargetNotFoundError: 404,
    InvalidRequestError: 422,
    NodeNotFoundError: 500,
    RenderError: 500,
}


def _get_settings() -> GatewaySettings:
    """Lazy-initialise settings from environment variables."""
    global _settings
    if _settings is None:
        _settings = GatewaySettings()
    return _settings


def _http_error(request_id: str, error: TracerError) -> HTTPException:
    status_code = _STATUS_CODES.get(type(error), 500)
    logger.warning("[%s] %s (HTTP %d)", request_id, error, status_code)
    return HTTPException(status_code=status_code, detail=error.reason)


# ─── Request/Response Models ────────────────────────────────


class TargetRequest(BaseModel):
    """Identifies one function inside a project."""

    project: str = Field(..., description="Path to the project root directory")
    file: str = Field(..., description="File defining the function (relative to project or absolute)")
    func: str = Field(..., description="Function name, 'Class.method', or bare method name")


class TraceRequest(TargetRequest):
    """Request model for the name-list endpoints."""

    depth: int | None = Field(None, description="Hops of calls to follow (default from settings)")


class ReportRequest(TraceRequest):
    """Request model for POST /api/analysis/report."""

    format: Literal["text", "json"] = Field("text", description="Report format")
    style: str | None = Field(None, description="Snippet style: canonical or verbatim")


class SnippetRequest(TargetRequest):
    """Request model for POST /api/analysis/snippet."""

    style: str | None = Field(None, description="Snippet style: canonical or verbatim")


class NamesResponse(BaseModel):
    """Response model for the name-list endpoints."""

    target: str = Field(..., description="Qualified name of the target function")
    depth: int = Field(..., description="Hop bound used")
    names: list[str] = Field(default_factory=list, description="Qualified names in discovery order")


class SnippetResponse(BaseModel):
    """Response model for POST /api/analysis/snippet."""

    target: str = Field(..., description="Qualified name of the target function")
    file: str = Field(..., description="File defining the function, relative to the project")
    snippet: str = Field(..., description="Source of the function")


# ─── POST /api/analysis/report ──────────────────────────────


@router.post("/analysis/report")
def create_report(request: ReportRequest) -> dict[str, Any]:
    """Full dependency report for one function, as text or JSON."""
    request_id = generate_request_id()
    settings = _get_settings()
    depth = request.depth if request.depth is not None else settings.default_depth
    style = request.style or settings.snippet_style
    logger.info(
        "[%s] report project=%r file=%r func=%r depth=%d format=%s",
        request_id, request.project, request.file, request.func, depth, request.format,
    )
    try:
        db, target = open_target(
            request.project, request.file, request.func, settings, depth=depth, style=style,
        )
        if request.format == "json":
            return analyze_data(target, request.file, depth, db, style)
        return {"report": analyze(target, request.file, depth, db, style)}
    except TracerError as e:
        raise _http_error(request_id, e) from e


# ─── POST /api/analysis/called-funcs ────────────────────────


@router.post("/analysis/called-funcs", response_model=NamesResponse)
def called_funcs(request: TraceRequest) -> NamesResponse:
    """Functions and methods reachable from the target within the hop bound."""
    request_id = generate_request_id()
    settings = _get_settings()
    depth = request.depth if request.depth is not None else settings.default_depth
    logger.info("[%s] called-funcs func=%r depth=%d", request_id, request.func, depth)
    try:
        db, target = open_target(
            request.project, request.file, request.func, settings, depth=depth,
        )
        names = extract_called_funcs(target, depth, db)
    except TracerError as e:
        raise _http_error(request_id, e) from e
    return NamesResponse(target=target.qualified_name, depth=depth, names=names)


# ─── POST /api/analysis/ref-types ───────────────────────────


@router.post("/analysis/ref-types", response_model=NamesResponse)
def ref_types(request: TraceRequest) -> NamesResponse:
    """Named types referenced from the target within the hop bound."""
    request_id = generate_request_id()
    settings = _get_settings()
    depth = request.depth if request.depth is not None else settings.default_depth
    logger.info("[%s] ref-types func=%r depth=%d", request_id, request.func, depth)
    try:
        db, target = open_target(
            request.project, request.file, request.func, settings, depth=depth,
        )
        names = extract_referenced_types(target, depth, db)
    except TracerError as e:
        raise _http_error(request_id, e) from e
    return NamesResponse(target=target.qualified_name, depth=depth, names=names)


# ─── POST /api/analysis/snippet ─────────────────────────────


@router.post("/analysis/snippet", response_model=SnippetResponse)
def get_snippet(request: SnippetRequest) -> SnippetResponse:
    """Source of the target function itself."""
    request_id = generate_request_id()
    settings = _get_settings()
    style = request.style or settings.snippet_style
    logger.info("[%s] snippet func=%r", request_id, request.func)
    try:
        _, target = open_target(
            request.project, request.file, request.func, settings, style=style,
        )
        source = get_declaration_source(target, style)
    except TracerError as e:
        raise _http_error(request_id, e) from e
    return SnippetResponse(target=target.qualified_name, file=target.file, snippet=source)

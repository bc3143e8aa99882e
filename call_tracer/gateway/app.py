"""
FastAPI Gateway — HTTP API layer.

Exposes the dependency tracer as JSON endpoints for callers that do not
speak MCP.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from call_tracer import __version__
from call_tracer.gateway.config import GatewaySettings
from call_tracer.gateway.routes import analysis, health
from call_tracer.shared.logging import setup_logging

logger = setup_logging("call_tracer.gateway.app", level="INFO")

# Global settings
settings = GatewaySettings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the FastAPI app."""
    logger.info("Starting Call Tracer Gateway")
    yield
    logger.info("Shutting down Call Tracer Gateway")


# Create FastAPI app
app = FastAPI(
    title="Call Tracer Gateway",
    description="Trace what a Python function transitively depends on",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(analysis.router, prefix="/api", tags=["Analysis"])
app.include_router(health.router, prefix="/api", tags=["Health"])


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with basic info."""
    return {
        "name": "Call Tracer Gateway",
        "version": __version__,
        "status": "operational",
        "endpoints": {
            "report": "/api/analysis/report",
            "called_funcs": "/api/analysis/called-funcs",
            "ref_types": "/api/analysis/ref-types",
            "snippet": "/api/analysis/snippet",
            "health": "/api/health",
        },
    }


def main() -> None:
    import uvicorn

    uvicorn.run(
        "call_tracer.gateway.app:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()

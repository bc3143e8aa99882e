"""
Custom exception hierarchy for call-tracer.

All errors inherit from TracerError so the CLI, the MCP server and the
gateway can catch them uniformly.
"""


class TracerError(Exception):
    """Base exception for all call-tracer errors."""

    def __init__(self, message: str, component: str = "unknown"):
        self.component = component
        self.reason = message
        super().__init__(f"[{component}] {message}")


class ProjectLoadError(TracerError):
    """The project could not be loaded into a program database."""

    def __init__(self, message: str):
        super().__init__(message, component="database")


class TargetNotFoundError(TracerError):
    """The requested (file, function) pair does not name a declaration."""

    def __init__(self, message: str):
        super().__init__(message, component="target")


class NodeNotFoundError(TracerError):
    """No declaration's name token sits at the requested position."""

    def __init__(self, message: str):
        super().__init__(message, component="locator")


class RenderError(TracerError):
    """A located declaration could not be re-serialised to source text."""

    def __init__(self, message: str):
        super().__init__(message, component="renderer")


class InvalidRequestError(TracerError):
    """Caller input was missing or malformed."""

    def __init__(self, message: str):
        super().__init__(message, component="request")

"""MCP server configuration."""

from call_tracer.shared.config import BaseTracerSettings


class ServerSettings(BaseTracerSettings):
    """Settings specific to the MCP tool server."""

    component_name: str = "server"

    transport: str = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080
    sse_path: str = "/mcp/sse"
    dns_rebinding_protection: bool = False
    allowed_hosts: list[str] = ["localhost", "localhost:8080", "127.0.0.1", "127.0.0.1:8080", "0.0.0.0"]

    class Config(BaseTracerSettings.Config):
        env_prefix = "CALL_TRACER_SERVER_"

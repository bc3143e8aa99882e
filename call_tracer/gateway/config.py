"""Gateway configuration."""

from call_tracer.shared.config import BaseTracerSettings


class GatewaySettings(BaseTracerSettings):
    """Settings specific to the HTTP gateway."""

    component_name: str = "gateway"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    class Config(BaseTracerSettings.Config):
        env_prefix = "CALL_TRACER_GATEWAY_"

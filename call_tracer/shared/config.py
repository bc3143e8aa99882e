"""
Base configuration for call-tracer components.

Uses Pydantic Settings for environment-based configuration.
Each component extends BaseTracerSettings with its own prefix.
"""

from pydantic_settings import BaseSettings

DEFAULT_EXCLUDE_DIRS = [
    "__pycache__", ".git", ".hg", ".tox", ".mypy_cache", ".pytest_cache",
    ".ruff_cache", "node_modules", ".eggs", "venv", ".venv", "env",
    "build", "dist", ".nox",
]

DEFAULT_SKIP_FILES = ["setup.py", "noxfile.py"]


class BaseTracerSettings(BaseSettings):
    """Base settings shared by every call-tracer entry point."""

    component_name: str = "base"

    # Traversal defaults
    default_depth: int = 3
    snippet_style: str = "canonical"

    # Project loading
    exclude_dirs: list[str] = DEFAULT_EXCLUDE_DIRS
    skip_files: list[str] = DEFAULT_SKIP_FILES
    strict_load: bool = False

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


class TracerSettings(BaseTracerSettings):
    """Settings used by the CLI and the core entry points."""

    component_name: str = "tracer"

    class Config(BaseTracerSettings.Config):
        env_prefix = "CALL_TRACER_"

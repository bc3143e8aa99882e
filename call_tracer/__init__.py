"""call-tracer: recursive dependency tracing for Python functions."""

__version__ = "0.1.0"

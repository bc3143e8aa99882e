"""
Entry point — runs the call tracer CLI directly from a checkout.

Usage:
    python main.py -p path/to/project -i pkg/service.py -t handle_request --deep 2

For MCP server mode:
    python -m call_tracer.server.server --mode stdio
"""

from call_tracer.cli import main

if __name__ == "__main__":
    main()

"""
Shared package — configuration, logging, and the exception hierarchy
used by the CLI, the MCP server, and the HTTP gateway.
"""

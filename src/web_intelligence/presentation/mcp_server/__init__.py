"""
MCP Server - FastMCP front end of the Web Intelligence engine.
"""

from .server import create_server, get_container, main
from .tools import format_response_markdown, register_web_intelligence_tools

__all__ = [
    "create_server",
    "get_container",
    "main",
    "register_web_intelligence_tools",
    "format_response_markdown",
]

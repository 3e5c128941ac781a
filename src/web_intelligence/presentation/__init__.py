"""
Presentation layer - transports over the application services.

- api: FastAPI HTTP endpoints and Server-Sent Events
- mcp_server: FastMCP tools for AI agents

Environment variables are read here and in ``web_intelligence.container`` only.
"""

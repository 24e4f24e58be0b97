"""MCP server exposing the canvas tools to agents."""

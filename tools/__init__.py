# =============================================================================
# tools/__init__.py
# =============================================================================
# External knowledge tools.
#
#   knowledge.py      → the ToolAdapter contract and the ToolRegistry
#   wolfram_alpha.py  → Wolfram|Alpha Short Answers adapter
#   mcp_server.py     → the same tools served over MCP (FastMCP)
#
# Tools answer questions; they never make branching decisions.  That is the
# engine's job (agent/engine.py).
# =============================================================================

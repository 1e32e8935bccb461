# =============================================================================
# tools/mcp_server.py  —  FastMCP server for the knowledge tools
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Exposes the same tool adapters the decision engine uses (tools/knowledge
#   + tools/wolfram_alpha) as MCP tools, so any MCP client can ask the
#   knowledge services the questions a decision tree would ask.
#
# HOW IT WORKS (the flow):
#   1. An MCP client calls "query_knowledge" with a question
#   2. FastMCP routes the call to the decorated function below
#   3. The function resolves the tool in the registry and calls query()
#   4. The client receives a small dict: the answer, or the error and its kind
#
#   A failing tool never raises across the protocol boundary; the error is
#   part of the returned dict, mirroring the engine's degradation policy.
#
# RUNNING THIS SERVER:
#   python -m tools.mcp_server        (stdio transport)
#   Requires WOLFRAM_APP_ID (and OPENROUTER_API_KEY, read with the settings).
# =============================================================================

from functools import lru_cache

from fastmcp import FastMCP

from core.config import get_settings
from core.errors import AdapterError
from core.logs import configure_logging, log_request, log_response, log_status
from tools.knowledge import ToolRegistry
from tools.wolfram_alpha import WolframAlphaTool

mcp = FastMCP("cognition-tools")


@lru_cache
def _registry() -> ToolRegistry:
    settings = get_settings()
    tool = WolframAlphaTool(settings.wolfram_app_id, timeout=settings.tool_timeout)
    return ToolRegistry([tool], default=tool.name)


def answer_question(registry: ToolRegistry, question: str, tool: str = "") -> dict:
    """Ask one tool a question; errors are returned, not raised."""
    log_request("query_knowledge", question=question, tool=tool)
    name = tool or registry.default or ""
    try:
        adapter = registry.resolve(name or True)
        answer = adapter.query(question)
    except AdapterError as exc:
        log_status(f"{name or 'default tool'} failed: {exc}")
        return log_response("query_knowledge", {
            "tool": name,
            "question": question,
            "error": str(exc),
            "kind": exc.kind,
        })
    return log_response("query_knowledge", {
        "tool": adapter.name,
        "question": question,
        "answer": answer,
    })


@mcp.tool()
def query_knowledge(question: str, tool: str = "") -> dict:
    """Answer a factual or mathematical question with an external knowledge tool.

    Args:
        question: Plain-language question, e.g. "distance from Earth to the Moon".
        tool: Tool name (e.g. "wolfram_alpha").  Empty uses the default tool.

    Returns:
        A dict with "tool", "question" and either "answer" or "error"/"kind".
    """
    return answer_question(_registry(), question, tool)


if __name__ == "__main__":
    configure_logging("INFO", tag="MCP")
    mcp.run()

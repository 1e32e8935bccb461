# =============================================================================
# core/logs.py  —  Logging setup and coloured call tracing
# =============================================================================
#
# Logs go to STDERR.  STDOUT belongs to the console conversation, and for
# tools/mcp_server.py it is the MCP transport: a log line on stdout would
# corrupt the protocol stream.
#
# ANSI COLOR CODES:
#     - CYAN for outgoing calls (adapter name + parameters)
#     - GREEN for replies
#     - YELLOW for status, degradation and retry messages
# =============================================================================

import json
import logging
import sys
from typing import Any, TypeVar

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"

T = TypeVar("T")

trace = logging.getLogger("cognition.trace")


def configure_logging(level: str = "WARNING", tag: str = "cognition") -> None:
    """Install the stderr handler used by both entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=f"%(asctime)s [{tag}] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def log_request(name: str, **params: Any) -> None:
    """Log an outgoing adapter call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    trace.info(f"{_CYAN}{name} called with: {param_str}{_RESET}")


def log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    trace.info(f"{_YELLOW}  → {message}{_RESET}")


def log_response(name: str, result: T) -> T:
    """Log a reply in GREEN, then return it unchanged."""
    if isinstance(result, (dict, list)):
        shown = json.dumps(result, separators=(",", ":"), default=str)
    else:
        shown = repr(result)
    trace.info(f"{_GREEN}  ← {name} response: {shown}{_RESET}")
    return result

# =============================================================================
# core/errors.py  —  Error taxonomy
# =============================================================================
#
# Startup errors (ConfigError, ParseError) abort the process.
# DanglingNode aborts the session.  AdapterError is recoverable: the engine
# converts it into a degraded turn or a re-prompt.  UserAbort is the exit
# sentinel and deliberately sits outside the CognitionError hierarchy.
# =============================================================================

from typing import Optional


class CognitionError(Exception):
    """Base class for every error raised by this project."""


class ConfigError(CognitionError):
    """Required configuration is missing or cannot be parsed."""


class ParseError(CognitionError):
    """The decision tree document is malformed or incomplete."""


class NodeNotFound(CognitionError):
    """A node id was looked up that the tree does not contain."""

    def __init__(self, node_id: str):
        super().__init__(f"Decision node with ID '{node_id}' not found")
        self.node_id = node_id


class EngineError(CognitionError):
    """The traversal cannot continue."""


class DanglingNode(EngineError):
    """The engine reached a node id it cannot resolve or leave."""

    def __init__(self, node_id: str, reason: str = "node not found"):
        super().__init__(f"Dangling decision node '{node_id}': {reason}")
        self.node_id = node_id
        self.reason = reason


class AdapterError(CognitionError):
    """An external service (language model or tool) failed.

    ``kind`` is one of: network, timeout, auth, rate_limit, malformed,
    service, unavailable.
    """

    def __init__(self, message: str, kind: str = "service", source: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.source = source

    def __str__(self) -> str:
        text = super().__str__()
        if self.source:
            return f"{self.source}: {text} [{self.kind}]"
        return f"{text} [{self.kind}]"


class UserAbort(Exception):
    """The user typed the exit sentinel."""

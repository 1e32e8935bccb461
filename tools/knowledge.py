# =============================================================================
# tools/knowledge.py  —  Tool Adapter contract & registry
# =============================================================================
#
# Every external knowledge service implements the same one-method contract:
#
#     query(question: str) -> str        (raises AdapterError)
#
# The engine never special-cases a service.  A node's `tool` marker is
# resolved through the ToolRegistry: `true` picks the default tool, a string
# picks a tool by name.
# =============================================================================

from typing import Dict, Iterable, Optional, Protocol, Union, runtime_checkable

from core.errors import AdapterError


@runtime_checkable
class ToolAdapter(Protocol):
    """A factual/computational answer service."""

    name: str

    def query(self, question: str) -> str:
        ...


class ToolRegistry:
    """Named collection of tool adapters with an optional default."""

    def __init__(self, tools: Iterable[ToolAdapter] = (), default: Optional[str] = None):
        self._tools: Dict[str, ToolAdapter] = {}
        for tool in tools:
            self.register(tool)
        self.default = default or next(iter(self._tools), None)

    def register(self, tool: ToolAdapter) -> None:
        self._tools[tool.name] = tool

    def names(self) -> list[str]:
        return list(self._tools)

    def resolve(self, marker: Union[bool, str, None]) -> ToolAdapter:
        """Return the adapter a node's tool marker refers to."""
        if marker is True:
            name = self.default
        elif isinstance(marker, str) and marker:
            name = marker
        else:
            raise AdapterError(f"Node does not require a tool: {marker!r}", kind="unavailable")

        if name is None or name not in self._tools:
            raise AdapterError(f"Could not find tool: {name}", kind="unavailable", source=name)
        return self._tools[name]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

# =============================================================================
# core/tree.py  —  Decision tree loading & lookup
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Parses a YAML decision tree document into an immutable Tree, validating
#   it on the way in.  Everything that can be checked statically is checked
#   here, so that the engine only ever meets a corrupted reference if the
#   Tree was built by hand.
#
# DOCUMENT SHAPES:
#
#   root: start                    - id: start
#   nodes:                           root: true        # or id "start"
#     - id: start                    text: ...
#       text: Do you need a fact?    choices: [...]
#       choices:
#         - choice: "Yes"
#           next_id: lookup
#         - choice: "No"
#           next_id: exit          # reserved: ends the session
#     - id: lookup
#       text: "The answer is {tool}."
#       tool: wolfram_alpha        # or `true` for the default tool
#       tool_query: "{input}"
#       predict: true
#       choices: [...]
#
#   Aliases: prompt_text/text, children/choices, label/choice,
#   target/next_id, requires_tool/tool.
# =============================================================================

from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Union

import yaml

from core.errors import NodeNotFound, ParseError
from core.models import EXIT_TARGET, Choice, DecisionNode

# Root id used by documents that are a bare list of nodes.
DEFAULT_ROOT_ID = "start"


class Tree:
    """Read-only mapping from node id to DecisionNode with one root."""

    def __init__(self, nodes: Mapping[str, DecisionNode], root_id: str):
        if root_id not in nodes:
            raise ParseError(f"Root node '{root_id}' is not defined")
        self._nodes = dict(nodes)
        self._root_id = root_id

    @property
    def root_id(self) -> str:
        return self._root_id

    def lookup(self, node_id: str) -> DecisionNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFound(node_id) from None

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[DecisionNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Tree(root={self._root_id!r}, nodes={len(self._nodes)})"


def load_file(path: Union[str, Path]) -> Tree:
    """Read and parse a tree document from disk."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"Failed to open decision tree file: {exc}") from exc
    return load(text)


def load(document: Any) -> Tree:
    """Parse YAML text (or already-parsed data) into a validated Tree."""
    if isinstance(document, (str, bytes)):
        try:
            data = yaml.safe_load(document)
        except yaml.YAMLError as exc:
            raise ParseError(f"Failed to parse decision tree YAML: {exc}") from exc
    else:
        data = document

    if isinstance(data, list):
        raw_nodes, declared_root = data, None
    elif isinstance(data, Mapping):
        raw_nodes, declared_root = data.get("nodes"), data.get("root")
        if not isinstance(raw_nodes, list):
            raise ParseError("Document must contain a 'nodes' list")
    else:
        raise ParseError("Document must be a list of nodes or a mapping with 'nodes'")

    nodes: dict[str, DecisionNode] = {}
    marked_roots = []
    for index, raw in enumerate(raw_nodes):
        node = _parse_node(raw, index)
        if node.id in nodes:
            raise ParseError(f"Duplicate node id '{node.id}'")
        nodes[node.id] = node
        if raw.get("root") is True:
            marked_roots.append(node.id)

    root_id = _resolve_root(declared_root, marked_roots, nodes)
    _check_references(nodes)
    return Tree(nodes, root_id)


def _parse_node(raw: Any, index: int) -> DecisionNode:
    if not isinstance(raw, Mapping):
        raise ParseError(f"Node #{index} must be a mapping")

    node_id = raw.get("id")
    if node_id is None or str(node_id).strip() == "":
        raise ParseError(f"Node #{index} is missing 'id'")
    node_id = str(node_id)

    text = _first(raw, "prompt_text", "text")
    if text is None:
        raise ParseError(f"Node '{node_id}' is missing 'text'")

    raw_choices = _first(raw, "children", "choices") or []
    if not isinstance(raw_choices, list):
        raise ParseError(f"Node '{node_id}': 'choices' must be a list")
    children = tuple(_parse_choice(node_id, item) for item in raw_choices)

    requires_tool = _first(raw, "requires_tool", "tool")
    if requires_tool is not None and not isinstance(requires_tool, (bool, str)):
        raise ParseError(f"Node '{node_id}': 'tool' must be a tool name or a boolean")

    tool_query = raw.get("tool_query")
    terminal = bool(raw.get("terminal", False))
    if terminal and children:
        raise ParseError(f"Node '{node_id}' is terminal but has choices")

    return DecisionNode(
        id=node_id,
        prompt_text=str(text),
        children=children,
        requires_tool=requires_tool,
        tool_query=None if tool_query is None else str(tool_query),
        terminal=terminal,
        predict=bool(raw.get("predict", False)),
    )


def _parse_choice(node_id: str, raw: Any) -> Choice:
    if not isinstance(raw, Mapping):
        raise ParseError(f"Node '{node_id}': every choice must be a mapping")
    label = _first(raw, "label", "choice")
    target = _first(raw, "target", "next_id")
    if label is None or str(label).strip() == "":
        raise ParseError(f"Node '{node_id}': choice is missing its label")
    if target is None or str(target).strip() == "":
        raise ParseError(f"Node '{node_id}': choice '{label}' is missing 'next_id'")
    return Choice(label=str(label).strip(), target_id=str(target))


def _resolve_root(declared: Any, marked: list[str], nodes: Mapping[str, DecisionNode]) -> str:
    if declared is not None:
        if marked and marked != [str(declared)]:
            raise ParseError("Conflicting root markers")
        root_id = str(declared)
    elif len(marked) > 1:
        raise ParseError(f"More than one node is marked as root: {', '.join(marked)}")
    elif marked:
        root_id = marked[0]
    elif DEFAULT_ROOT_ID in nodes:
        root_id = DEFAULT_ROOT_ID
    else:
        raise ParseError("No node is marked as root")

    if root_id not in nodes:
        raise ParseError(f"Root node '{root_id}' is not defined")
    return root_id


def _check_references(nodes: Mapping[str, DecisionNode]) -> None:
    for node in nodes.values():
        for choice in node.children:
            if choice.target_id not in nodes and choice.target_id != EXIT_TARGET:
                raise ParseError(
                    f"Node '{node.id}': choice '{choice.label}' points to "
                    f"unknown node '{choice.target_id}'"
                )


def _first(raw: Mapping, *keys: str) -> Optional[Any]:
    for key in keys:
        if key in raw:
            return raw[key]
    return None

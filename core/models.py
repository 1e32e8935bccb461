# =============================================================================
# core/models.py  —  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the shape of everything that flows between the
# tree loader, the decision engine, the adapters and the console session.
#
#   DecisionNode / Choice  →  immutable, owned by the Tree
#   TraversalState         →  mutable, owned by exactly one session
#   Completion             →  returned by the language model adapter
#   TurnResult             →  returned by the engine for every turn
# =============================================================================

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

# Choice target that ends the session without naming a node.
EXIT_TARGET = "exit"

# Placeholder inside prompt_text that receives the tool's answer.
TOOL_PLACEHOLDER = "{tool}"

# Placeholder inside tool_query that receives the latest user input.
INPUT_PLACEHOLDER = "{input}"


class Phase(str, Enum):
    """Engine state machine phases."""

    AWAITING_INPUT = "awaiting_input"
    RESOLVING_TOOL = "resolving_tool"
    PREDICTING = "predicting"
    BRANCHING = "branching"
    TERMINAL = "terminal"


class Outcome(str, Enum):
    """How a turn ended, from the session's point of view."""

    ADVANCED = "advanced"        # moved to a new, non-terminal node
    REPROMPT = "reprompt"        # input not understood, ask again
    FALLBACK = "fallback"        # user must type a label verbatim
    TERMINAL = "terminal"        # reached a terminal node
    EXIT = "exit"                # chose a branch targeting "exit"
    TURN_LIMIT = "turn_limit"    # max_turns exhausted


# -----------------------------------------------------------------------------
# Tree nodes
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Choice:
    """One labelled branch out of a node."""

    label: str                         # "Yes", "Tell me a fact", ...
    target_id: str                     # id of the next node, or EXIT_TARGET


@dataclass(frozen=True)
class DecisionNode:
    """A single point in the decision tree."""

    id: str
    prompt_text: str
    children: tuple[Choice, ...] = ()
    requires_tool: Union[bool, str, None] = None
    tool_query: Optional[str] = None
    terminal: bool = False
    predict: bool = False

    @property
    def labels(self) -> list[str]:
        return [choice.label for choice in self.children]

    def target_for(self, label: str) -> Optional[str]:
        for choice in self.children:
            if choice.label == label:
                return choice.target_id
        return None


# -----------------------------------------------------------------------------
# Adapter results
# -----------------------------------------------------------------------------
@dataclass
class Completion:
    """The model's raw text and the candidate label it names (None = no match)."""

    label: Optional[str]
    raw_text: str

    @property
    def matched(self) -> bool:
        return self.label is not None


# -----------------------------------------------------------------------------
# Session state
# -----------------------------------------------------------------------------
@dataclass
class TraversalState:
    """Transient per-session state, mutated only by the DecisionEngine."""

    current_id: str
    visited: list[str] = field(default_factory=list)
    visit_counts: Counter = field(default_factory=Counter)
    last_input: str = ""
    turns: int = 0
    retries: int = 0
    fallback: bool = False
    node_text: str = ""
    history: list[str] = field(default_factory=list)
    phase: Phase = Phase.AWAITING_INPUT

    @property
    def finished(self) -> bool:
        return self.phase is Phase.TERMINAL


@dataclass
class TurnResult:
    """Everything the session needs to render one engine turn."""

    node_id: str
    output: str
    outcome: Outcome
    choice: Optional[str] = None
    options: list[str] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.outcome in (Outcome.TERMINAL, Outcome.EXIT, Outcome.TURN_LIMIT)

# =============================================================================
# agent/engine.py  —  The Decision Engine
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Walks a decision tree one user turn at a time.  At each node it:
#
#     1. resolves factual content with a tool   (RESOLVING_TOOL, optional)
#     2. asks the language model which choice    (PREDICTING)
#        the user's free-form answer selects
#     3. moves to that child                     (BRANCHING)
#     4. stops at a terminal node                (TERMINAL)
#        or waits for the next line of input     (AWAITING_INPUT)
#
#   ┌──────────────┐  input  ┌────────────┐ label ┌───────────┐
#   │AWAITING_INPUT│────────▶│ PREDICTING │──────▶│ BRANCHING │
#   └──────────────┘         └────────────┘       └───────────┘
#          ▲    ▲ no match (re-prompt /                 │
#          │    └──── verbatim fallback) ──┘            ▼
#          │         ┌────────────────┐         child terminal?
#          └─────────│ RESOLVING_TOOL │◀── no ──────┤
#                    └────────────────┘             │ yes
#                                                   ▼
#                                               TERMINAL
#
# FAILURE POLICY:
#   - Tool failure        → keep the unresolved text, attach a notice.
#   - Model failure or a  → re-prompt up to `max_retries` times, then ask the
#     label outside the     user to type a label verbatim (no model needed).
#     candidate set
#   - Missing node, or a  → DanglingNode: the tree is corrupt, the session
#     dead end              ends.
#
# TERMINATION:
#   Every processed input (typed or predicted) counts as one turn, and no
#   session processes more than `max_turns` of them, whatever the graph shape.
# =============================================================================

import logging
from typing import Optional

from agent.language_model import LanguageModelAdapter
from agent.prompt import DecisionPromptTemplate
from core.errors import AdapterError, DanglingNode, EngineError, NodeNotFound, UserAbort
from core.labels import match_verbatim
from core.models import (
    EXIT_TARGET,
    INPUT_PLACEHOLDER,
    TOOL_PLACEHOLDER,
    DecisionNode,
    Outcome,
    Phase,
    TraversalState,
    TurnResult,
)
from core.tree import Tree
from tools.knowledge import ToolRegistry

logger = logging.getLogger(__name__)

EXIT_SENTINEL = "exit"

NOT_UNDERSTOOD = "I'm sorry, I didn't understand your response."
CHOOSE_VERBATIM = "Please type one of the following choices exactly as shown:"
FAREWELL = "Thank you for using the cognition system."
TURN_LIMIT_REACHED = "This conversation has reached its maximum length. Goodbye."
LOOKUP_FAILED = "Note: the factual lookup failed ({error}); the answer above could not be filled in."
MODEL_FAILED = "Note: the language model could not interpret your answer ({error})."


def is_exit(text: str) -> bool:
    """True for the reserved exit sentinel (trimmed, case-insensitive)."""
    return text.strip().casefold() == EXIT_SENTINEL


class DecisionEngine:
    """Traverses a Tree, one user turn per ``step()`` call."""

    def __init__(
        self,
        tree: Tree,
        language_model: LanguageModelAdapter,
        tools: Optional[ToolRegistry] = None,
        max_retries: int = 2,
        max_turns: int = 50,
        template: Optional[DecisionPromptTemplate] = None,
        agent_name: str = "Agent",
        user_name: str = "User",
    ):
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.tree = tree
        self.language_model = language_model
        self.tools = tools if tools is not None else ToolRegistry()
        self.max_retries = max_retries
        self.max_turns = max_turns
        self.template = template or DecisionPromptTemplate()
        self.agent_name = agent_name
        self.user_name = user_name

    # =========================================================================
    # Public API
    # =========================================================================
    def start(self) -> tuple[TraversalState, TurnResult]:
        """Open a session at the root and return its first output."""
        state = TraversalState(current_id=self.tree.root_id)
        return state, self._enter(state, self.tree.root_id, user_input="")

    def step(self, state: TraversalState, user_input: str) -> TurnResult:
        """Process one line of user input."""
        if is_exit(user_input):
            state.phase = Phase.TERMINAL
            raise UserAbort()
        if state.finished:
            raise EngineError("Session has already finished")
        if state.turns >= self.max_turns:
            return self._turn_limit(state)

        state.turns += 1
        state.last_input = user_input
        state.history.append(f"{self.user_name}: {user_input}")

        node = self._lookup(state.current_id)
        if node.terminal:
            state.phase = Phase.TERMINAL
            return TurnResult(node.id, state.node_text or node.prompt_text, Outcome.TERMINAL)
        if not node.children:
            raise DanglingNode(node.id, "non-terminal node has no choices")

        if state.fallback:
            label = match_verbatim(user_input, node.labels)
            if label is None:
                return self._fallback(state, node)
            logger.info("Verbatim choice at '%s': %s", node.id, label)
            return self._advance(state, node, label, user_input)

        notices = []
        try:
            label = self._predict(state, node, user_input)
        except AdapterError as exc:
            logger.warning("Prediction failed at '%s': %s", node.id, exc)
            label = None
            notices.append(MODEL_FAILED.format(error=exc))

        if label is None:
            return self._not_understood(state, node, notices)

        logger.info("Predicted choice at '%s': %s", node.id, label)
        return self._advance(state, node, label, user_input)

    # =========================================================================
    # Branching
    # =========================================================================
    def _advance(self, state: TraversalState, node: DecisionNode, label: str, user_input: str) -> TurnResult:
        result = self._branch(state, node, label, user_input)
        notices = list(result.notices)

        # Chained prediction: answer freshly entered nodes from the same input.
        while not result.finished and state.turns < self.max_turns:
            child = self._lookup(state.current_id)
            if not child.predict or not child.children or child.id == self.tree.root_id:
                break
            state.turns += 1
            try:
                next_label = self._predict(state, child, user_input)
            except AdapterError as exc:
                logger.warning("Chained prediction failed at '%s': %s", child.id, exc)
                next_label = None
            if next_label is None:
                logger.info("Could not predict the user's choice at '%s'", child.id)
                state.phase = Phase.AWAITING_INPUT
                break
            logger.info("Predicted follow-up choice at '%s': %s", child.id, next_label)
            result = self._branch(state, child, next_label, user_input)
            notices.extend(result.notices)

        result.notices = notices
        return result

    def _branch(self, state: TraversalState, node: DecisionNode, label: str, user_input: str) -> TurnResult:
        state.phase = Phase.BRANCHING
        state.retries = 0
        state.fallback = False

        target = node.target_for(label)
        if target is None:
            raise EngineError(f"Choice '{label}' does not belong to node '{node.id}'")

        if target == EXIT_TARGET and target not in self.tree:
            state.phase = Phase.TERMINAL
            state.history.append(f"{self.agent_name}: {FAREWELL}")
            return TurnResult(node.id, FAREWELL, Outcome.EXIT, choice=label)

        result = self._enter(state, target, user_input)
        result.choice = label
        return result

    def _enter(self, state: TraversalState, node_id: str, user_input: str) -> TurnResult:
        node = self._lookup(node_id)

        if node_id == self.tree.root_id and state.visited:
            # Restarting from the root: the old transcript no longer applies.
            state.history.clear()
        state.current_id = node_id
        state.visited.append(node_id)
        state.visit_counts[node_id] += 1
        if state.visit_counts[node_id] > 1:
            logger.debug("Cycle: '%s' visited %d times", node_id, state.visit_counts[node_id])

        if node.terminal:
            state.phase = Phase.TERMINAL
            state.node_text = node.prompt_text
            state.history.append(f"{self.agent_name}: {node.prompt_text}")
            return TurnResult(node.id, node.prompt_text, Outcome.TERMINAL)

        text, notices = self._resolve_text(state, node, user_input)
        state.node_text = text
        state.history.append(f"{self.agent_name}: {text}")
        state.phase = Phase.AWAITING_INPUT
        return TurnResult(node.id, text, Outcome.ADVANCED, options=node.labels, notices=notices)

    # =========================================================================
    # Tool resolution
    # =========================================================================
    def _resolve_text(self, state: TraversalState, node: DecisionNode, user_input: str) -> tuple[str, list[str]]:
        if not node.requires_tool:
            return node.prompt_text, []

        state.phase = Phase.RESOLVING_TOOL
        question = self._tool_question(node, user_input)
        try:
            tool = self.tools.resolve(node.requires_tool)
            answer = tool.query(question)
        except AdapterError as exc:
            logger.warning("Tool lookup failed at '%s': %s", node.id, exc)
            return node.prompt_text, [LOOKUP_FAILED.format(error=exc)]

        logger.info("Tool answer at '%s': %s", node.id, answer)
        if TOOL_PLACEHOLDER in node.prompt_text:
            return node.prompt_text.replace(TOOL_PLACEHOLDER, answer), []
        return f"{node.prompt_text}\n{answer}", []

    @staticmethod
    def _tool_question(node: DecisionNode, user_input: str) -> str:
        if node.tool_query:
            return node.tool_query.replace(INPUT_PLACEHOLDER, user_input).strip()
        return " ".join(node.prompt_text.replace(TOOL_PLACEHOLDER, "").split())

    # =========================================================================
    # Prediction
    # =========================================================================
    def _predict(self, state: TraversalState, node: DecisionNode, user_input: str) -> Optional[str]:
        """Ask the model for a label; None when it names no candidate."""
        state.phase = Phase.PREDICTING
        labels = node.labels
        prompt = self.template.format(
            history=state.history,
            decision_prompt=state.node_text or node.prompt_text,
            choices=labels,
            user_input=user_input,
        )
        logger.debug("Decision prompt for '%s':\n%s", node.id, prompt)

        completion = self.language_model.predict(prompt, labels)
        logger.debug("Completion for '%s': %r", node.id, completion.raw_text)

        if completion.label is None:
            return None
        if completion.label not in labels:
            logger.warning("Model named '%s', which is not a choice at '%s'", completion.label, node.id)
            return None
        return completion.label

    def _not_understood(self, state: TraversalState, node: DecisionNode, notices: list[str]) -> TurnResult:
        if state.retries >= self.max_retries:
            result = self._fallback(state, node)
            result.notices = notices + result.notices
            return result
        state.retries += 1
        state.phase = Phase.AWAITING_INPUT
        state.history.append(f"{self.agent_name}: {NOT_UNDERSTOOD}")
        return TurnResult(
            node.id,
            f"{NOT_UNDERSTOOD}\n{state.node_text or node.prompt_text}",
            Outcome.REPROMPT,
            options=node.labels,
            notices=notices,
        )

    def _fallback(self, state: TraversalState, node: DecisionNode) -> TurnResult:
        state.fallback = True
        state.phase = Phase.AWAITING_INPUT
        return TurnResult(node.id, CHOOSE_VERBATIM, Outcome.FALLBACK, options=node.labels)

    def _turn_limit(self, state: TraversalState) -> TurnResult:
        logger.warning("Session stopped after %d turns", state.turns)
        state.phase = Phase.TERMINAL
        return TurnResult(state.current_id, TURN_LIMIT_REACHED, Outcome.TURN_LIMIT)

    def _lookup(self, node_id: str) -> DecisionNode:
        try:
            return self.tree.lookup(node_id)
        except NodeNotFound:
            raise DanglingNode(node_id) from None

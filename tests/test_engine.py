import pytest

from agent.engine import (
    CHOOSE_VERBATIM,
    FAREWELL,
    NOT_UNDERSTOOD,
    TURN_LIMIT_REACHED,
    DecisionEngine,
    is_exit,
)
from core.errors import AdapterError, DanglingNode, EngineError, UserAbort
from core.models import Choice, Completion, DecisionNode, Outcome, Phase
from core.tree import Tree, load
from tools.knowledge import ToolRegistry

from tests.fakes import AlwaysModel, BrokenTool, FakeTool, ScriptedModel, cycle_tree


# =============================================================================
# The three reference scenarios
# =============================================================================
def test_yes_reaches_goodbye(scenario_tree, tools):
    model = ScriptedModel("yes")
    engine = DecisionEngine(scenario_tree, model, tools)

    state, opening = engine.start()
    assert opening.output == "Do you want to leave?"
    assert opening.options == ["yes", "no"]

    result = engine.step(state, "yes")

    assert result.output == "Goodbye"
    assert result.outcome is Outcome.TERMINAL
    assert result.finished
    assert state.phase is Phase.TERMINAL
    assert state.visited == ["root", "B"]


def test_no_resolves_tool_answer(scenario_tree, tools, fake_tool):
    model = ScriptedModel("no")
    engine = DecisionEngine(scenario_tree, model, tools)
    state, _ = engine.start()

    result = engine.step(state, "no")

    assert result.output == "The answer is 42."
    assert result.notices == []
    assert result.choice == "no"
    assert not result.finished
    assert fake_tool.questions == ["The answer is ."]


def test_tool_failure_degrades_then_dead_end_is_dangling(scenario_tree):
    broken = BrokenTool()
    engine = DecisionEngine(scenario_tree, ScriptedModel("no"), ToolRegistry([broken]))
    state, _ = engine.start()

    result = engine.step(state, "no")

    assert result.output == "The answer is {tool}."
    assert len(result.notices) == 1
    assert "factual lookup failed" in result.notices[0]
    assert not result.finished
    assert state.current_id == "A"

    with pytest.raises(DanglingNode) as excinfo:
        engine.step(state, "anything")
    assert excinfo.value.node_id == "A"


# =============================================================================
# Tool resolution details
# =============================================================================
def test_tool_query_uses_user_input():
    tree = Tree({
        "q": DecisionNode("q", "Ask away.", (Choice("question", "a"),)),
        "a": DecisionNode("a", "Answer: {tool}", (Choice("more", "q"),), requires_tool="calc", tool_query="compute {input}"),
    }, "q")
    calc = FakeTool("4", name="calc")
    engine = DecisionEngine(tree, ScriptedModel("question"), ToolRegistry([calc]))
    state, _ = engine.start()

    result = engine.step(state, "2+2")

    assert calc.questions == ["compute 2+2"]
    assert result.output == "Answer: 4"
    assert state.node_text == "Answer: 4"


def test_tool_answer_appended_without_placeholder():
    tree = Tree({"a": DecisionNode("a", "Population of Japan:", (Choice("ok", "a"),), requires_tool=True)}, "a")
    engine = DecisionEngine(tree, ScriptedModel(), ToolRegistry([FakeTool("125 million")]))

    _, opening = engine.start()

    assert opening.output == "Population of Japan:\n125 million"


def test_unknown_tool_degrades():
    tree = Tree({"a": DecisionNode("a", "Value: {tool}", (Choice("ok", "a"),), requires_tool="missing")}, "a")
    engine = DecisionEngine(tree, ScriptedModel(), ToolRegistry([FakeTool()]))

    _, opening = engine.start()

    assert opening.output == "Value: {tool}"
    assert "Could not find tool" in opening.notices[0]


def test_tool_resolves_before_prediction():
    tree = load("""
root: a
nodes:
  - id: a
    text: "Is {tool} big?"
    tool: true
    choices:
      - {choice: big, next_id: end}
  - {id: end, text: End, terminal: true}
""")
    model = ScriptedModel("big")
    engine = DecisionEngine(tree, model, ToolRegistry([FakeTool("1000")]))
    state, _ = engine.start()

    engine.step(state, "yes it is")

    assert "Is 1000 big?" in model.prompts[0]


# =============================================================================
# Prediction: prompt contents, re-prompt, fallback
# =============================================================================
def test_prompt_contains_node_labels_input_and_history(scenario_tree, tools):
    model = ScriptedModel("yes")
    engine = DecisionEngine(scenario_tree, model, tools)
    state, _ = engine.start()

    engine.step(state, "I'd like to go")

    prompt = model.prompts[0]
    assert "Do you want to leave?" in prompt
    assert "- yes\n  - no" in prompt
    assert "I'd like to go" in prompt
    assert "Agent: Do you want to leave?" in prompt
    assert "User: I'd like to go" in prompt
    assert model.labels[0] == ["yes", "no"]


def test_unknown_label_triggers_reprompt(scenario_tree, tools):
    model = ScriptedModel(Completion(label="maybe", raw_text="maybe"))
    engine = DecisionEngine(scenario_tree, model, tools)
    state, _ = engine.start()

    result = engine.step(state, "hmm")

    assert result.outcome is Outcome.REPROMPT
    assert result.output.startswith(NOT_UNDERSTOOD)
    assert result.options == ["yes", "no"]
    assert state.current_id == "root"
    assert state.retries == 1


def test_retries_then_verbatim_fallback(scenario_tree, tools):
    model = ScriptedModel("banana", "banana", "banana")
    engine = DecisionEngine(scenario_tree, model, tools, max_retries=2)
    state, _ = engine.start()

    assert engine.step(state, "a").outcome is Outcome.REPROMPT
    assert engine.step(state, "b").outcome is Outcome.REPROMPT
    fallback = engine.step(state, "c")

    assert fallback.outcome is Outcome.FALLBACK
    assert fallback.output == CHOOSE_VERBATIM
    assert fallback.options == ["yes", "no"]
    assert state.fallback
    assert model.calls == 3

    # In fallback mode the model is not consulted at all.
    assert engine.step(state, "perhaps").outcome is Outcome.FALLBACK
    result = engine.step(state, " YES ")
    assert result.output == "Goodbye"
    assert model.calls == 3


def test_zero_retries_falls_back_immediately(scenario_tree, tools):
    engine = DecisionEngine(scenario_tree, ScriptedModel("banana"), tools, max_retries=0)
    state, _ = engine.start()

    assert engine.step(state, "a").outcome is Outcome.FALLBACK


def test_model_error_is_visible_and_counts_as_retry(scenario_tree, tools):
    model = ScriptedModel(AdapterError("quota", kind="rate_limit", source="gpt"), "no")
    engine = DecisionEngine(scenario_tree, model, tools)
    state, _ = engine.start()

    result = engine.step(state, "no thanks")

    assert result.outcome is Outcome.REPROMPT
    assert "language model" in result.notices[0]
    assert "rate_limit" in result.notices[0]
    assert state.retries == 1

    result = engine.step(state, "no thanks")
    assert result.output == "The answer is 42."
    assert state.retries == 0


def test_model_errors_exhaust_into_fallback(scenario_tree, tools):
    errors = [AdapterError("down", kind="network") for _ in range(3)]
    engine = DecisionEngine(scenario_tree, ScriptedModel(*errors), tools, max_retries=2)
    state, _ = engine.start()

    outcomes = [engine.step(state, "x").outcome for _ in range(3)]

    assert outcomes == [Outcome.REPROMPT, Outcome.REPROMPT, Outcome.FALLBACK]


# =============================================================================
# Termination
# =============================================================================
def _chain_tree(depth: int) -> Tree:
    nodes = {}
    for i in range(depth):
        nodes[f"n{i}"] = DecisionNode(f"n{i}", f"Step {i}", (Choice("next", f"n{i + 1}"), Choice("skip", "end")))
    nodes[f"n{depth}"] = DecisionNode(f"n{depth}", "Last", (Choice("next", "end"),))
    nodes["end"] = DecisionNode("end", "End", terminal=True)
    return Tree(nodes, "n0")


def _binary_tree(depth: int) -> Tree:
    nodes = {}

    def build(node_id: str, level: int) -> None:
        if level == depth:
            nodes[node_id] = DecisionNode(node_id, f"Leaf {node_id}", terminal=True)
            return
        left, right = f"{node_id}L", f"{node_id}R"
        nodes[node_id] = DecisionNode(node_id, f"Node {node_id}", (Choice("left", left), Choice("right", right)))
        build(left, level + 1)
        build(right, level + 1)

    build("r", 0)
    return Tree(nodes, "r")


@pytest.mark.parametrize(
    "tree, longest_path",
    [(_chain_tree(1), 2), (_chain_tree(6), 7), (_binary_tree(3), 3), (_binary_tree(5), 5)],
)
@pytest.mark.parametrize("reply", ["next", "left", "right", "skip"])
def test_acyclic_traversal_terminates_within_longest_path(tree, longest_path, reply):
    engine = DecisionEngine(tree, AlwaysModel(reply), max_turns=1000)
    state, result = engine.start()
    labels_used = 0

    while not result.finished:
        node = tree.lookup(state.current_id)
        wanted = reply if reply in node.labels else node.labels[0]
        engine.language_model.reply = wanted
        result = engine.step(state, wanted)
        labels_used += 1

    assert result.outcome is Outcome.TERMINAL
    assert labels_used <= longest_path


@pytest.mark.parametrize("max_turns", [1, 5, 17])
def test_cycle_never_exceeds_max_turns(max_turns):
    model = AlwaysModel("again")
    engine = DecisionEngine(cycle_tree(), model, max_turns=max_turns)
    state, result = engine.start()
    steps = 0

    while not result.finished:
        result = engine.step(state, "again")
        steps += 1
        assert state.turns <= max_turns

    assert result.outcome is Outcome.TURN_LIMIT
    assert result.output == TURN_LIMIT_REACHED
    assert steps == max_turns + 1
    assert model.calls == max_turns
    assert state.visit_counts["ping"] + state.visit_counts["pong"] == max_turns + 1


def test_visit_counts_track_cycles():
    engine = DecisionEngine(cycle_tree(), AlwaysModel("again"))
    state, _ = engine.start()

    for _ in range(4):
        engine.step(state, "again")

    assert state.visited == ["ping", "pong", "ping", "pong", "ping"]
    assert state.visit_counts == {"ping": 3, "pong": 2}


def test_finished_session_rejects_more_input(scenario_tree, tools):
    engine = DecisionEngine(scenario_tree, ScriptedModel("yes"), tools)
    state, _ = engine.start()
    engine.step(state, "yes")

    with pytest.raises(EngineError):
        engine.step(state, "again")


def test_engine_rejects_bad_limits(scenario_tree):
    with pytest.raises(ValueError):
        DecisionEngine(scenario_tree, ScriptedModel(), max_turns=0)
    with pytest.raises(ValueError):
        DecisionEngine(scenario_tree, ScriptedModel(), max_retries=-1)


# =============================================================================
# Exit handling
# =============================================================================
@pytest.mark.parametrize("text", ["exit", " EXIT ", "Exit\n"])
def test_exit_sentinel_aborts_without_adapter_calls(scenario_tree, text):
    model = ScriptedModel()
    tool = FakeTool()
    engine = DecisionEngine(scenario_tree, model, ToolRegistry([tool]))
    state, _ = engine.start()

    with pytest.raises(UserAbort):
        engine.step(state, text)

    assert model.calls == 0
    assert tool.questions == []
    assert state.phase is Phase.TERMINAL


def test_is_exit():
    assert is_exit(" exit ")
    assert not is_exit("exit now")
    assert not is_exit("")


def test_exit_target_ends_session():
    tree = load("root: a\nnodes:\n  - {id: a, text: Stay, choices: [{choice: leave, next_id: exit}]}")
    engine = DecisionEngine(tree, ScriptedModel("leave"))
    state, _ = engine.start()

    result = engine.step(state, "I'm off")

    assert result.outcome is Outcome.EXIT
    assert result.output == FAREWELL
    assert result.finished


# =============================================================================
# Chained prediction and restarts
# =============================================================================
PREDICT_TREE = """
root: start
nodes:
  - id: start
    text: What do you need?
    choices:
      - {choice: fact, next_id: topic}
      - {choice: nothing, next_id: done}
  - id: topic
    text: Which kind of fact?
    predict: true
    choices:
      - {choice: science, next_id: science}
      - {choice: history, next_id: done}
  - id: science
    text: "Fact: {tool}. More?"
    tool: true
    tool_query: "{input}"
    choices:
      - {choice: more, next_id: start}
      - {choice: stop, next_id: done}
  - {id: done, text: Bye, terminal: true}
"""


def test_chained_prediction_skips_redundant_question():
    model = ScriptedModel("fact", "science")
    tool = FakeTool("light is fast")
    engine = DecisionEngine(load(PREDICT_TREE), model, ToolRegistry([tool]))
    state, _ = engine.start()

    result = engine.step(state, "tell me a science fact")

    assert result.node_id == "science"
    assert result.output == "Fact: light is fast. More?"
    assert state.visited == ["start", "topic", "science"]
    assert state.turns == 2
    assert tool.questions == ["tell me a science fact"]


def test_chained_prediction_miss_waits_for_input():
    model = ScriptedModel("fact", "NONE")
    engine = DecisionEngine(load(PREDICT_TREE), model, ToolRegistry([FakeTool()]))
    state, _ = engine.start()

    result = engine.step(state, "a fact please")

    assert result.node_id == "topic"
    assert result.outcome is Outcome.ADVANCED
    assert result.options == ["science", "history"]
    assert state.retries == 0
    assert state.phase is Phase.AWAITING_INPUT


def test_chained_prediction_error_is_quiet():
    model = ScriptedModel("fact", AdapterError("boom"))
    engine = DecisionEngine(load(PREDICT_TREE), model, ToolRegistry([FakeTool()]))
    state, _ = engine.start()

    result = engine.step(state, "a fact please")

    assert result.node_id == "topic"
    assert result.notices == []


def test_chained_prediction_respects_max_turns():
    model = ScriptedModel("fact")
    engine = DecisionEngine(load(PREDICT_TREE), model, ToolRegistry([FakeTool()]), max_turns=1)
    state, _ = engine.start()

    result = engine.step(state, "science fact")

    assert result.node_id == "topic"
    assert model.calls == 1
    assert engine.step(state, "science").outcome is Outcome.TURN_LIMIT


def test_returning_to_root_resets_history():
    model = ScriptedModel("fact", "science", "more")
    engine = DecisionEngine(load(PREDICT_TREE), model, ToolRegistry([FakeTool()]))
    state, _ = engine.start()
    engine.step(state, "science fact")

    engine.step(state, "more please")

    assert state.current_id == "start"
    assert state.history == ["Agent: What do you need?"]
    assert state.visit_counts["start"] == 2


def test_returning_to_root_does_not_chain():
    tree = load(
        """
root: menu
nodes:
  - id: menu
    text: Again or quit?
    predict: true
    choices:
      - {choice: again, next_id: again}
      - {choice: quit, next_id: done}
  - id: again
    text: One more time?
    choices:
      - {choice: again, next_id: menu}
  - {id: done, text: Bye, terminal: true}
"""
    )
    model = AlwaysModel("again")
    engine = DecisionEngine(tree, model)
    state, _ = engine.start()
    engine.step(state, "again")

    result = engine.step(state, "again")

    assert result.node_id == "menu"
    assert result.options == ["again", "quit"]
    assert state.phase is Phase.AWAITING_INPUT
    assert model.calls == 2
    assert state.turns == 2

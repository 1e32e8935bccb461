# =============================================================================
# main.py  —  Entry Point: the console session
# =============================================================================
#
# HOW TO RUN:
#   python main.py [decision_tree.yaml] [--model MODEL] [--max-turns N]
#
#   Requires OPENROUTER_API_KEY and WOLFRAM_APP_ID (environment or .env).
#
# WHAT HAPPENS:
#   1. Settings are read once (core/config.py); missing credentials stop here
#   2. The decision tree is loaded and validated (core/tree.py)
#   3. The engine is wired up (agent/cognition_agent.py)
#   4. Each node's text and choices are printed, one line of input is read,
#      and the engine decides where to go next
#   5. "exit", Ctrl-C or Ctrl-D end the session at any prompt
# =============================================================================

import argparse
import dataclasses
import sys
from typing import Callable, Optional, Sequence

from agent.cognition_agent import create_engine
from agent.engine import DecisionEngine, is_exit
from core.config import get_settings
from core.errors import CognitionError, ConfigError, DanglingNode, ParseError, UserAbort
from core.logs import configure_logging
from core.models import TurnResult


def show(result: TurnResult, agent_name: str = "Agent", write: Callable[[str], None] = print) -> None:
    """Print a turn: the agent's text, any notices, then the choices."""
    write(f"\n🤖 {agent_name}: {result.output}")
    for notice in result.notices:
        write(f"⚠️  {notice}")
    for option in result.options:
        write(f"- {option}")


def run_session(
    engine: DecisionEngine,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> int:
    """Run one interactive session. Returns a process exit status."""
    try:
        state, result = engine.start()
    except DanglingNode as exc:
        write(f"\n❌ {exc}")
        return 1
    show(result, engine.agent_name, write)

    while not result.finished:
        try:
            user_input = read(f"\n🧑 {engine.user_name}: ").strip()
        except (EOFError, KeyboardInterrupt):
            write("\n\n👋 Goodbye!")
            return 0

        if is_exit(user_input):
            write("\n👋 Goodbye!")
            return 0
        if not user_input:
            continue

        try:
            result = engine.step(state, user_input)
        except UserAbort:
            write("\n👋 Goodbye!")
            return 0
        except DanglingNode as exc:
            write(f"\n❌ The decision tree is broken: {exc}")
            return 1
        show(result, engine.agent_name, write)

    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a decision tree with a language model.")
    parser.add_argument("tree", nargs="?", help="decision tree YAML file (default: DECISION_TREE_PATH)")
    parser.add_argument("--model", help="LiteLLM model string (default: MODEL_NAME)")
    parser.add_argument("--max-turns", type=int, help="maximum turns per session (default: MAX_TURNS)")
    parser.add_argument("--max-retries", type=int, help="re-prompts before the verbatim fallback")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = get_settings()
        overrides = {
            "tree_path": args.tree,
            "model": args.model,
            "max_turns": args.max_turns,
            "max_retries": args.max_retries,
        }
        settings = dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    except ConfigError as exc:
        print(f"❌ Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)

    try:
        engine = create_engine(settings)
    except ParseError as exc:
        print(f"❌ Could not load decision tree '{settings.tree_path}': {exc}", file=sys.stderr)
        return 1
    except CognitionError as exc:
        print(f"❌ Startup failed: {exc}", file=sys.stderr)
        return 1

    print("=" * 70)
    print("  COGNITION: guided decisions")
    print(f"  Tree: {settings.tree_path}  |  Model: {settings.model}")
    print("=" * 70)
    print("   (Type 'exit' to quit)")

    return run_session(engine)


if __name__ == "__main__":
    sys.exit(main())

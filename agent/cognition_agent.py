# =============================================================================
# agent/cognition_agent.py  —  Wiring the engine from configuration
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Turns Settings into a ready-to-run DecisionEngine:
#
#     Settings ──▶ Tree            (core/tree.py, loaded once)
#              ──▶ LiteLlmAdapter  (agent/language_model.py)
#              ──▶ ToolRegistry    (tools/, Wolfram|Alpha as default tool)
#              ──▶ prompt template (agent/prompt.py, optionally from a file)
#
#   Credentials are passed into the adapters' constructors here; nothing
#   below this point reads the environment.
# =============================================================================

from typing import Optional

from agent.engine import DecisionEngine
from agent.language_model import LiteLlmAdapter
from agent.prompt import DecisionPromptTemplate
from core.config import Settings
from core.tree import Tree, load_file
from tools.knowledge import ToolRegistry
from tools.wolfram_alpha import WolframAlphaTool


def create_tools(settings: Settings) -> ToolRegistry:
    wolfram = WolframAlphaTool(settings.wolfram_app_id, timeout=settings.tool_timeout)
    return ToolRegistry([wolfram], default=wolfram.name)


def create_language_model(settings: Settings) -> LiteLlmAdapter:
    return LiteLlmAdapter(
        model=settings.model,
        api_key=settings.llm_api_key,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        timeout=settings.llm_timeout,
        api_base=settings.llm_api_base,
    )


def create_engine(settings: Settings, tree: Optional[Tree] = None) -> DecisionEngine:
    """Build the decision engine described by ``settings``.

    Raises ParseError if the tree document is invalid and ConfigError if the
    prompt template cannot be read.
    """
    if tree is None:
        tree = load_file(settings.tree_path)

    template = None
    if settings.prompt_template_path:
        template = DecisionPromptTemplate.from_file(settings.prompt_template_path)

    return DecisionEngine(
        tree=tree,
        language_model=create_language_model(settings),
        tools=create_tools(settings),
        max_retries=settings.max_retries,
        max_turns=settings.max_turns,
        template=template,
    )

# =============================================================================
# agent/__init__.py
# =============================================================================
# The orchestration layer.
#
#   engine.py           → DecisionEngine: the turn-by-turn traversal
#   language_model.py   → the LanguageModelAdapter contract + LiteLLM adapter
#   prompt.py           → the decision prompt template
#   cognition_agent.py  → builds an engine from Settings
#
# The engine decides WHICH branch to take; tools (tools/) only answer
# factual questions, and the tree (core/tree.py) only describes the shape.
# =============================================================================

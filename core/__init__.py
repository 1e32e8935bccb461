# =============================================================================
# core/__init__.py
# =============================================================================
# Pure Python building blocks: data models, tree loading, label matching,
# errors, configuration and logging helpers.
#
# Nothing in this package talks to the network or imports litellm/FastMCP.
# =============================================================================

# =============================================================================
# agent/prompt.py  —  The decision prompt (what the model sees at each node)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Builds the completion prompt that asks the language model to map the
#   user's free-form answer onto exactly one of the node's choices.
#
# TEMPLATE SLOTS:
#   {{history}}          transcript so far ("Agent: ..." / "User: ..." lines)
#   {{decision_prompt}}  the node's text, after tool resolution
#   {{choices}}          the candidate labels, one per "- " line
#   {{user_input}}       the raw line the user typed
#
#   The template is a plain text file so it can be tuned without touching
#   code: set DECISION_PROMPT_TEMPLATE to its path.
# =============================================================================

from pathlib import Path
from typing import Sequence, Union

from core.errors import ConfigError

DEFAULT_TEMPLATE = """You are the decision component of a guided conversation.
The agent asked the user a question and the user answered in their own words.
Pick the ONE choice that best matches the user's answer.

Conversation so far:
  {{history}}

Current question:
  {{decision_prompt}}

Choices:
  - {{choices}}

User response:
  {{user_input}}

Reply with the text of the chosen choice, copied exactly and with nothing
else.  If no choice matches the user's response, reply with: NONE

Choice:"""


class DecisionPromptTemplate:
    """A prompt template with {{slot}} placeholders."""

    def __init__(self, text: str = DEFAULT_TEMPLATE):
        self.text = text

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "DecisionPromptTemplate":
        try:
            return cls(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"Failed to read prompt template {path}: {exc}") from exc

    def format(
        self,
        history: Sequence[str],
        decision_prompt: str,
        choices: Sequence[str],
        user_input: str,
    ) -> str:
        return (
            self.text
            .replace("{{history}}", "\n  ".join(history))
            .replace("{{decision_prompt}}", decision_prompt)
            .replace("{{choices}}", "\n  - ".join(choice.strip() for choice in choices))
            .replace("{{user_input}}", user_input)
        )

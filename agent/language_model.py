# =============================================================================
# agent/language_model.py  —  Language Model Adapter (LiteLLM)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Sends a decision prompt to a text-completion service and turns the reply
#   into a Completion: the raw text plus the candidate label it names.
#
# WHY LITELLM:
#   One call signature for OpenAI, Anthropic, Gemini, local servers, and
#   OpenRouter's gateway.  The model string picks the provider:
#
#     "openrouter/openai/gpt-4o"          (default)
#     "openrouter/anthropic/claude-3.5-sonnet"
#     "openai/gpt-4o-mini"
#
# ERROR POLICY:
#   The adapter never retries (num_retries=0) and never interprets the tree.
#   Every failure becomes an AdapterError whose `kind` tells the engine what
#   happened; the retry policy lives in agent/engine.py.
# =============================================================================

from typing import Optional, Protocol, Sequence, runtime_checkable

import litellm

from core.errors import AdapterError
from core.labels import match_label
from core.logs import log_request, log_response
from core.models import Completion


@runtime_checkable
class LanguageModelAdapter(Protocol):
    """Text-in/text-out boundary to a completion service."""

    def predict(self, prompt: str, candidate_labels: Sequence[str]) -> Completion:
        ...


class LiteLlmAdapter:
    """LanguageModelAdapter backed by ``litellm.completion``."""

    name = "litellm"

    def __init__(
        self,
        model: str,
        api_key: str,
        temperature: float = 0.5,
        max_tokens: int = 200,
        timeout: float = 30.0,
        api_base: Optional[str] = None,
    ):
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.api_base = api_base

    def predict(self, prompt: str, candidate_labels: Sequence[str]) -> Completion:
        text = self._complete(prompt)
        return Completion(label=match_label(text, candidate_labels), raw_text=text)

    def _complete(self, prompt: str) -> str:
        log_request(self.name, model=self.model, prompt_chars=len(prompt))
        try:
            response = litellm.completion(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                api_key=self.api_key,
                api_base=self.api_base,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                num_retries=0,
            )
        except litellm.AuthenticationError as exc:
            raise AdapterError(f"Authentication failed: {exc}", kind="auth", source=self.model) from exc
        except litellm.RateLimitError as exc:
            raise AdapterError(f"Rate limited: {exc}", kind="rate_limit", source=self.model) from exc
        except litellm.Timeout as exc:
            raise AdapterError(f"Request timed out: {exc}", kind="timeout", source=self.model) from exc
        except litellm.APIConnectionError as exc:
            raise AdapterError(f"Connection failed: {exc}", kind="network", source=self.model) from exc
        except Exception as exc:
            raise AdapterError(f"Completion failed: {exc}", kind="service", source=self.model) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise AdapterError("Model did not return any choices", kind="malformed", source=self.model)
        content = getattr(choices[0].message, "content", None)
        if not content or not content.strip():
            raise AdapterError("Model returned an empty completion", kind="malformed", source=self.model)
        return log_response(self.name, content.strip())

# =============================================================================
# tools/wolfram_alpha.py  —  Wolfram|Alpha Short Answers tool
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Sends a factual or mathematical question to the Wolfram|Alpha Short
#   Answers API and returns the plain-text answer.
#
#     GET https://api.wolframalpha.com/v1/result?appid=<APP_ID>&i=<question>
#
#   200 → plain text answer
#   501 → the input was understood but has no short answer
#   403 → missing or invalid appid
#
# ERROR POLICY:
#   Every failure surfaces as AdapterError with a `kind` the engine can log.
#   Nothing is retried here; the engine decides how to degrade.
# =============================================================================

import http.client
import socket
import urllib.error
import urllib.parse
import urllib.request

from core.errors import AdapterError
from core.logs import log_request, log_response

DEFAULT_ENDPOINT = "https://api.wolframalpha.com/v1/result"

_STATUS_KINDS = {
    401: "auth",
    403: "auth",
    429: "rate_limit",
    501: "malformed",
}


class WolframAlphaTool:
    """AI tool for answering factual and mathematical questions."""

    name = "wolfram_alpha"

    def __init__(self, app_id: str, endpoint: str = DEFAULT_ENDPOINT, timeout: float = 10.0):
        self.app_id = app_id
        self.endpoint = endpoint
        self.timeout = timeout

    def build_url(self, question: str) -> str:
        query_string = urllib.parse.urlencode({"appid": self.app_id, "i": question})
        return f"{self.endpoint}?{query_string}"

    def query(self, question: str) -> str:
        if not question or not question.strip():
            raise AdapterError("Empty question", kind="malformed", source=self.name)

        log_request(self.name, question=question)
        req = urllib.request.Request(self.build_url(question))
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as exc:
            kind = _STATUS_KINDS.get(exc.code, "service")
            raise AdapterError(f"HTTP {exc.code}: {exc.reason}", kind=kind, source=self.name) from exc
        except (socket.timeout, TimeoutError) as exc:
            raise AdapterError(f"Request timed out after {self.timeout}s", kind="timeout", source=self.name) from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise AdapterError(
                    f"Request timed out after {self.timeout}s", kind="timeout", source=self.name
                ) from exc
            raise AdapterError(f"Connection failed: {exc.reason}", kind="network", source=self.name) from exc
        except (http.client.HTTPException, OSError) as exc:
            # Dropped connections and truncated bodies escape urlopen unwrapped.
            raise AdapterError(f"Connection failed: {exc!r}", kind="network", source=self.name) from exc

        answer = body.strip()
        if not answer:
            raise AdapterError("Empty response", kind="malformed", source=self.name)
        return log_response(self.name, answer)

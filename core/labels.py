# =============================================================================
# core/labels.py  —  Matching free text against a node's candidate labels
# =============================================================================
#
# Completion models rarely answer with the bare label: they add quotes, a
# trailing period, a leading "- " bullet, or a second line of explanation.
# match_label() accepts those variations but never guesses: the result is
# either one of the candidate labels, spelled exactly as in the tree, or None.
# =============================================================================

import re
from typing import Optional, Sequence

_STRIP_CHARS = " \t\r\n\"'`*"
_BULLET = re.compile(r"^(?:[-•]|\d+[.)])\s+")
_TRAILING_PUNCTUATION = re.compile(r"[.!?;:,]+$")


def normalize_label(text: str) -> str:
    """Case-fold and strip decoration around a single label-like string."""
    value = text.strip(_STRIP_CHARS)
    value = _BULLET.sub("", value)
    value = _TRAILING_PUNCTUATION.sub("", value)
    return value.strip(_STRIP_CHARS).casefold()


def match_label(text: Optional[str], labels: Sequence[str]) -> Optional[str]:
    """Return the candidate label named by ``text``, or None.

    Tried in order: exact match of the trimmed text, normalized match of the
    whole text, normalized match of its first non-empty line.
    """
    if not text:
        return None

    trimmed = text.strip()
    for label in labels:
        if label.strip() == trimmed:
            return label

    candidates = [trimmed]
    first_line = next((line for line in trimmed.splitlines() if line.strip()), "")
    if first_line and first_line != trimmed:
        candidates.append(first_line)

    by_normal = {}
    for label in labels:
        by_normal.setdefault(normalize_label(label), label)

    for candidate in candidates:
        found = by_normal.get(normalize_label(candidate))
        if found is not None:
            return found
    return None


def match_verbatim(text: str, labels: Sequence[str]) -> Optional[str]:
    """Deterministic matching used when the language model is bypassed."""
    wanted = text.strip().casefold()
    for label in labels:
        if label.strip().casefold() == wanted:
            return label
    return None

"""Lightweight token estimation, word counting and throughput.

Two deliberately different approximations live here:

* ``estimate_tokens`` sizes conversation history against the budget.
* ``count_words`` feeds the streamed throughput telemetry, matching the
  counter existing dashboards were built on.
"""

import math
import re
import sys

CHARS_PER_TOKEN = 4
"""Rough English ratio: one token is about four characters."""

_WHITESPACE_RUN = re.compile(r"\s+")


def estimate_tokens(text: str | None) -> int:
    """Return an estimated token count for *text* (``ceil(len / 4)``)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Return the leading characters of *text* that fit *max_tokens*."""
    return text[: max(0, max_tokens) * CHARS_PER_TOKEN]


def count_words(text: str | None) -> int:
    """Count whitespace-separated fields in a streamed fragment.

    A leading or trailing separator produces an empty field, so
    ``" world"`` counts as 2.
    """
    if not text:
        return 0
    return len(_WHITESPACE_RUN.split(text))


def safe_elapsed(seconds: float) -> float:
    """Clamp a measured duration to a positive value usable as a divisor."""
    return seconds if seconds > 0 else sys.float_info.epsilon


def tokens_per_second(tokens: int, seconds: float) -> float:
    return tokens / safe_elapsed(seconds)

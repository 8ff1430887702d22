"""
Outbound secret redaction.

Everything user- or project-derived that is embedded in a prompt goes through
``redact`` before it leaves the process. The chairman's synthesis shown back to
the user is never redacted.
"""

import json
import re
from typing import Any

REDACTED = "[REDACTED]"

# Bearer headers first so the prefix survives as a hint of what was removed
_BEARER_PATTERN = re.compile(r"bearer\s+[A-Za-z0-9_\-.]{12,}", re.IGNORECASE)
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_\-.]{28,}")

DEFAULT_CONTEXT_CHARS = 12_000
TRUNCATION_SUFFIX = "…(truncated)"


def redact(text: str) -> str:
    """Replace token-shaped substrings with ``[REDACTED]``."""
    raw = "" if text is None else str(text)
    no_bearer = _BEARER_PATTERN.sub(f"Bearer {REDACTED}", raw)
    return _TOKEN_PATTERN.sub(REDACTED, no_bearer)


def clamp(text: str, max_chars: int, suffix: str = "") -> str:
    """Cut ``text`` to ``max_chars`` characters, appending ``suffix`` when cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + suffix


def redact_context(context: Any, max_chars: int = DEFAULT_CONTEXT_CHARS) -> str:
    """Serialize project context to JSON, clamp it, then redact it."""
    if context is None:
        serialized = "{}"
    elif isinstance(context, str):
        serialized = context
    else:
        serialized = json.dumps(context, ensure_ascii=False, sort_keys=True, default=str)
    return redact(clamp(serialized, max_chars, TRUNCATION_SUFFIX))

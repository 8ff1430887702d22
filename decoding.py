"""
Resilient JSON decoding for model output.

Models wrap JSON in prose, markdown fences, or both. ``decode`` finds the first
balanced object or array that actually parses and checks it against a set of
required keys. Every failure path returns None; callers treat None as "use the
fallback", never as fatal.
"""

import json
import re
from typing import Any, Callable, Iterable, Optional

_FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?(.*?)```", re.DOTALL)

_CLOSERS = {"{": "}", "[": "]"}


def _try_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _candidates(raw: str) -> Iterable[str]:
    """Texts worth scanning, most specific first."""
    for match in _FENCE_PATTERN.finditer(raw):
        yield match.group(1).strip()
    yield raw.strip()


def _scan_balanced(text: str, opener: str, accept: Callable[[Any], bool] = lambda value: True) -> Any:
    """Return the first balanced ``opener`` block in ``text`` that parses and is accepted.

    Brackets inside JSON strings are ignored. When a balanced block fails to
    parse or is rejected, scanning resumes at the next opening bracket.
    """
    closer = _CLOSERS[opener]
    start = text.find(opener)

    while start != -1:
        depth = 0
        in_string = False
        escape = False

        for i in range(start, len(text)):
            ch = text[i]

            if in_string:
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == '"':
                    in_string = False
                continue

            if ch == '"':
                in_string = True
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    parsed = _try_parse(text[start:i + 1])
                    if parsed is not None and accept(parsed):
                        return parsed
                    break

        start = text.find(opener, start + 1)

    return None


def _matches(value: Any, expect: Optional[type], required: Iterable[str]) -> bool:
    if expect is not None and not isinstance(value, expect):
        return False
    if not isinstance(value, (dict, list)):
        return False
    required = list(required)
    if required:
        if not isinstance(value, dict):
            return False
        return all(key in value for key in required)
    return True


def decode(
    raw: Optional[str],
    required: Iterable[str] = (),
    expect: Optional[type] = None,
) -> Any:
    """Extract the first JSON value from ``raw`` that satisfies the constraints.

    Args:
        raw: Model output, possibly prose-wrapped or fenced
        required: Keys that must be present (implies an object)
        expect: ``dict`` or ``list`` to restrict the JSON type

    Returns:
        The decoded value, or None
    """
    if not raw or not isinstance(raw, str):
        return None

    required = tuple(required)
    if required and expect is None:
        expect = dict

    if expect is dict:
        openers = ("{",)
    elif expect is list:
        openers = ("[",)
    else:
        openers = ("{", "[")

    for candidate in _candidates(raw):
        direct = _try_parse(candidate)
        if direct is not None and _matches(direct, expect, required):
            return direct

        # Whichever bracket appears first in the text wins
        found = []
        for opener in openers:
            position = candidate.find(opener)
            if position != -1:
                found.append((position, opener))
        for _, opener in sorted(found):
            value = _scan_balanced(candidate, opener, lambda v: _matches(v, expect, required))
            if value is not None:
                return value

    return None

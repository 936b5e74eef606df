"""
Tolerant JSON recovery for model replies.

Gemini often wraps the JSON it was asked for in prose or markdown fences,
even when told not to. ``parse_model_json`` strips the fences, keeps the span
between the first opening delimiter and the last closing one, and parses it.
Nested braces inside string values are fine as long as nothing outside the
JSON span adds extra delimiters; when that happens a balanced scan from the
first opener is tried before giving up.
"""

import json
import re
from typing import Optional, Union

from polyclinic.config import SNIPPET_LIMIT, logger
from polyclinic.errors import MalformedModelOutput

JsonValue = Union[dict, list]

DELIMITERS = {
    "object": ("{", "}"),
    "array": ("[", "]"),
}

_OPENING_FENCE = re.compile(r"```json", re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Remove ```json and ``` markers, leaving everything else in place."""
    return _OPENING_FENCE.sub("", text).replace("```", "")


def extract_span(text: str, expected: str = "object") -> str:
    """
    Cut the text down to the first opener .. last closer of the expected kind.

    Args:
        text: Fence-free, stripped model output
        expected: "object" or "array"

    Returns:
        The inclusive span, or the text unchanged if no valid span exists
    """
    opener, closer = DELIMITERS[expected]
    start = text.find(opener)
    end = text.rfind(closer)
    if start != -1 and end != -1 and start < end:
        return text[start:end + 1]
    return text


def balanced_span(text: str, expected: str = "object") -> Optional[str]:
    """Return the bracket-balanced span starting at the first opener, if any."""
    opener, closer = DELIMITERS[expected]
    start = text.find(opener)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def _snippet(text: str) -> str:
    if len(text) <= SNIPPET_LIMIT:
        return text
    return text[:SNIPPET_LIMIT] + "..."


def parse_model_json(text: Optional[str], expected: str = "object") -> JsonValue:
    """
    Recover a single JSON object or array from free-form model output.

    Args:
        text: Raw reply text, possibly with prose and markdown fences
        expected: "object" or "array", the kind the prompt asked for

    Returns:
        The parsed dict or list

    Raises:
        MalformedModelOutput: no JSON object/array could be recovered
    """
    if expected not in DELIMITERS:
        raise ValueError(f"expected must be 'object' or 'array', got {expected!r}")

    if not text:
        text = "{}" if expected == "object" else "[]"

    cleaned = strip_fences(text).strip()
    candidate = extract_span(cleaned, expected)

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as e:
        fallback = balanced_span(cleaned, expected)
        if fallback is None or fallback == candidate:
            raise MalformedModelOutput(f"Model reply is not valid JSON: {e}",
                                       snippet=_snippet(candidate)) from e
        try:
            value = json.loads(fallback)
        except json.JSONDecodeError:
            raise MalformedModelOutput(f"Model reply is not valid JSON: {e}",
                                       snippet=_snippet(candidate)) from e
        logger.debug("Recovered model JSON with balanced scan")

    if not isinstance(value, (dict, list)):
        raise MalformedModelOutput(
            f"Model reply is a JSON {type(value).__name__}, not an object or array",
            snippet=_snippet(candidate),
        )
    return value

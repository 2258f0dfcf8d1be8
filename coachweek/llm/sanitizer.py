"""Response sanitizer for free-text LLM output.

Models wrap JSON in prose or markdown fences, leave `//` comments after values
and trailing commas before closing brackets. This module extracts the payload
and repairs those syntax slips. It never checks semantics; schema validation
belongs to each agent's parser.

Everything here is pure and idempotent: sanitizing clean JSON returns it
unchanged.
"""

import json
import re
from typing import Any

from coachweek.agents.errors import SchemaError

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
_OPENERS = {"{": "}", "[": "]"}


def _find_structure_span(text: str) -> str | None:
    """Return the first balanced top-level {...} or [...] span.

    Brackets inside string literals are ignored. When the structure never
    closes, the span from the first opener to the last matching closer is
    returned so the JSON decoder can report a precise error.
    """
    start = -1
    for index, char in enumerate(text):
        if char in _OPENERS:
            start = index
            break
    if start == -1:
        return None

    opener = text[start]
    closer = _OPENERS[opener]
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
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    end = text.rfind(closer)
    if end > start:
        return text[start : end + 1]
    return text[start:]


def extract_payload(raw_text: str) -> str:
    """Pick the structured part of a model response."""
    fence = _FENCE_RE.search(raw_text)
    if fence:
        return fence.group(1)
    span = _find_structure_span(raw_text)
    if span is not None:
        return span
    return raw_text


def strip_line_comments(text: str) -> str:
    """Drop `// ...` comments that sit outside string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            index += 1
            continue
        if char == '"':
            in_string = True
            out.append(char)
            index += 1
            continue
        if char == "/" and index + 1 < length and text[index + 1] == "/":
            newline = text.find("\n", index)
            if newline == -1:
                break
            index = newline
            continue
        out.append(char)
        index += 1
    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    """Drop a comma that only precedes whitespace and a closing bracket."""
    out: list[str] = []
    in_string = False
    escaped = False
    length = len(text)
    for index, char in enumerate(text):
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == ",":
            lookahead = index + 1
            while lookahead < length and text[lookahead].isspace():
                lookahead += 1
            if lookahead < length and text[lookahead] in "}]":
                continue
        out.append(char)
    return "".join(out)


def sanitize(raw_text: str) -> str:
    """Extract and repair the JSON payload of a raw model response.

    Args:
        raw_text: Raw text returned by the generation backend

    Returns:
        Candidate JSON text, ready for json.loads
    """
    payload = extract_payload(raw_text)
    payload = strip_line_comments(payload)
    payload = strip_trailing_commas(payload)
    return payload.strip()


def decode_payload(text: str) -> Any:
    """Decode sanitized text.

    Raises:
        SchemaError: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError(f"Response is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e

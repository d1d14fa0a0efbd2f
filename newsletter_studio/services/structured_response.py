"""Recover JSON objects from model responses.

Accepted grammar, after trimming surrounding whitespace::

    response := fenced | raw
    fenced   := "```" [language] NEWLINE json NEWLINE? "```"
    raw      := json

When the text holds prose around a fenced block, the first fenced block is
used. As a last resort the outermost ``{...}`` span of the text is tried.
"""

import json
import re
from typing import Any, Dict, Iterable, Iterator, Optional

from newsletter_studio.infrastructure.error_handling import AIFormatError


FENCE_PATTERN = re.compile(
    r"```[ \t]*(?P<lang>[A-Za-z0-9_+-]*)[ \t]*\r?\n(?P<body>.*?)\r?\n?[ \t]*```",
    re.DOTALL,
)


def strip_fence(text: str) -> Optional[str]:
    """Return the body of the first fenced code block, or None."""
    match = FENCE_PATTERN.search(text)
    if match is None:
        return None
    return match.group("body").strip()


def wrap_in_fence(payload: str, language: str = "json") -> str:
    """Wrap a payload in a fenced code block the way chat models do."""
    return f"```{language}\n{payload}\n```"


def _candidates(text: str) -> Iterator[str]:
    stripped = text.strip()
    fenced = strip_fence(stripped)
    if fenced is not None:
        yield fenced
    yield stripped
    start, end = stripped.find("{"), stripped.rfind("}")
    if 0 <= start < end:
        yield stripped[start:end + 1]


def extract_structured_response(
    text: Optional[str],
    required_keys: Iterable[str] = (),
) -> Dict[str, Any]:
    """Parse a JSON object out of a raw or fenced model response.

    Args:
        text: Model output
        required_keys: Keys that must be present with a non-empty value

    Returns:
        The decoded JSON object

    Raises:
        AIFormatError: if no JSON object with the required keys is recoverable
    """
    if not text or not text.strip():
        raise AIFormatError("AI returned an empty response.")

    required = list(required_keys)
    for candidate in _candidates(text):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        missing = [key for key in required if data.get(key) in (None, "")]
        if missing:
            raise AIFormatError(
                "AI response is missing required fields.",
                details={"missing": missing},
            )
        return data

    raise AIFormatError(
        "AI failed to return a valid JSON format. Please try again.",
        details={"response_preview": text[:200]},
    )

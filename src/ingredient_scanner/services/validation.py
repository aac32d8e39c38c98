"""Parsing of structured model output."""

import json

from ingredient_scanner.errors import (
    EmptyResponseError,
    MalformedOutputError,
    TruncatedResponseError,
)

_DECODER = json.JSONDecoder()


def parse_json_object(text: str) -> dict[str, object]:
    """Parse model answer text into a JSON object.

    Text that does not end with ``}`` is rejected as truncated without
    attempting a parse.
    """
    stripped = text.strip()
    if not stripped:
        raise EmptyResponseError("Model returned an empty response")
    if not stripped.endswith("}"):
        raise TruncatedResponseError(
            f"Response looks truncated (ends with {stripped[-20:]!r})"
        )
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        payload = _first_object(stripped)
    if not isinstance(payload, dict):
        raise MalformedOutputError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _first_object(text: str) -> dict[str, object]:
    """Return the first balanced JSON object embedded in text."""
    start = text.find("{")
    while start != -1:
        try:
            candidate, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    raise MalformedOutputError("Response does not contain a JSON object")

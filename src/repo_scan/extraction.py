"""Best-effort extraction of a JSON object from free-form model output."""

from __future__ import annotations

import json
from typing import Any

from repo_scan.exceptions import StructuredExtractionError


def find_balanced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span of `text`.

    Braces inside JSON string literals (including escaped quotes) do not count
    towards the balance.

    Args:
        text (str): raw model output, possibly wrapped in prose or code fences

    Returns:
        str | None: the span, or None when no opening brace is ever closed
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # unbalanced from this brace; an earlier stray "{" must not hide a later object
        start = text.find("{", start + 1)
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Extract and parse the first JSON object embedded in `text`.

    Args:
        text (str): raw model output

    Raises:
        StructuredExtractionError: with reason ``no_object`` when no balanced span
            exists and ``invalid_json`` when the span does not parse.

    Returns:
        dict[str, Any]: the parsed object
    """
    span = find_balanced_object(text or "")
    if span is None:
        raise StructuredExtractionError(reason="no_object")
    try:
        value = json.loads(span)
    except json.JSONDecodeError as e:
        raise StructuredExtractionError(reason="invalid_json", detail=str(e)) from e
    return value

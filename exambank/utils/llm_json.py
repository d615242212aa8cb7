"""Lenient JSON extraction from language-model responses."""

from __future__ import annotations

import json
import re
from typing import Any

# Matches markdown code fences (```json ... ``` or ``` ... ```) that models
# wrap around JSON output despite being asked not to.
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def extract_json(response: str) -> Any:
    """Parse the JSON value in *response*.

    Strips a surrounding code fence, then parses the text; if that fails,
    retries on the span from the first opening brace or bracket to the last
    matching closing one (preamble like "Here are the questions:" is
    dropped).

    Raises
    ------
    json.JSONDecodeError
        If no valid JSON can be extracted.
    """
    text = response.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
        if not starts:
            raise
        start = min(starts)
        closer = "}" if text[start] == "{" else "]"
        end = text.rfind(closer)
        if end <= start:
            raise
        return json.loads(text[start : end + 1])

"""
JSON helpers for parsing LLM and RAG answers.

Answers come back as free text: sometimes plain JSON, sometimes wrapped in
Markdown code fences, sometimes with escaped newlines and quotes when the
answer was itself serialized as a string.
"""

import json
import re
from typing import Any, Dict, Optional

FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _unescape(text: str) -> str:
    return (
        text.replace('\\n', '\n')
        .replace('\\t', '\t')
        .replace('\\"', '"')
    )


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return None
    # A JSON-encoded string holding the object
    if isinstance(data, str):
        return _loads_object(data)
    return data if isinstance(data, dict) else None


def _first_braced_block(text: str) -> Optional[str]:
    start = text.find('{')
    end = text.rfind('}')
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse the first JSON object found in an LLM answer.

    Tries, in order: the raw text, the content of a Markdown code fence,
    the outermost brace-delimited block, and the same steps after
    unescaping. Returns None when no JSON object can be recovered.
    """
    if not text or not isinstance(text, str):
        return None

    for source in (text.strip(), _unescape(text.strip())):
        candidates = [source]
        fence = FENCE_PATTERN.search(source)
        if fence:
            candidates.append(fence.group(1).strip())
        block = _first_braced_block(source)
        if block:
            candidates.append(block)

        for candidate in candidates:
            parsed = _loads_object(candidate)
            if parsed is not None:
                return parsed

    return None

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from app.core.errors import ModelOutputError

_FENCE_RE = re.compile(r"```(?:json)?", flags=re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_query_list(text: str) -> List[str]:
    """Parse the search-query step output: a JSON array of strings."""
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ModelOutputError(f"search queries are not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ModelOutputError("search queries must be a JSON array")
    return [str(item).strip() for item in data if isinstance(item, str) and item.strip()]


def extract_json_object(text: str) -> Dict[str, Any]:
    """Cut the outermost {...} out of model text (dropping any surrounding prose) and parse it."""
    cleaned = strip_code_fences(text)
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first == -1 or last < first:
        raise ModelOutputError("no JSON object in model output")
    try:
        data = json.loads(cleaned[first : last + 1])
    except json.JSONDecodeError as exc:
        raise ModelOutputError(f"model output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ModelOutputError("model output is not a JSON object")
    return data

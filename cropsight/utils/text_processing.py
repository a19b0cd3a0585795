import json
import re
from typing import Any, Dict, List, Optional

_CODE_FENCE_START = re.compile(r'^```(?:json)?\s*\n?', re.IGNORECASE)
_CODE_FENCE_END = re.compile(r'\n?```\s*$')
_WHITESPACE = re.compile(r'\s+')


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one"""
    if not text:
        return ""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _CODE_FENCE_START.sub('', cleaned)
        cleaned = _CODE_FENCE_END.sub('', cleaned)
    return cleaned.strip()


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the JSON object in a model response.

    Gemini sometimes wraps JSON in markdown code blocks or adds a sentence
    before/after it, so fall back to the outermost {...} span.

    Raises:
        ValueError: no JSON object could be decoded
    """
    json_str = strip_code_fences(text)
    if not json_str:
        raise ValueError("empty response")

    if not json_str.startswith("{"):
        start_idx = json_str.find("{")
        end_idx = json_str.rfind("}")
        if start_idx == -1 or end_idx <= start_idx:
            raise ValueError("no JSON object in response")
        json_str = json_str[start_idx:end_idx + 1]

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"expected JSON object, got {type(data).__name__}")
    return data


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(' ', text or '').strip()


def clean_string_list(values: Optional[List[Any]], limit: Optional[int] = None) -> List[str]:
    """
    Trim each entry, drop blanks.

    Raises:
        ValueError: values is not a list of strings
    """
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValueError(f"expected a list, got {type(values).__name__}")

    cleaned = []
    for value in values:
        if not isinstance(value, str):
            raise ValueError(f"expected string items, got {type(value).__name__}")
        value = normalize_whitespace(value)
        if value:
            cleaned.append(value)

    if limit is not None:
        cleaned = cleaned[:limit]
    return cleaned


def truncate(text: str, length: int = 200) -> str:
    """Shorten text for log lines"""
    if not text:
        return ""
    text = text.replace("\n", " ")
    return text if len(text) <= length else text[:length] + "..."

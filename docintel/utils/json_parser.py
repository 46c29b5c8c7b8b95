import json
import re
from typing import Any, Dict, List, Optional, Union

from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON out of free-form AI output.

    Handles:
    - Markdown code fences (```json ... ```), anywhere in the text
    - Prose before or after the payload
    - Concatenated JSON objects ({...}\\n{...}), merged into one dict

    Args:
        text: The text expected to contain a JSON payload

    Returns:
        Parsed JSON value or None if nothing parseable was found
    """
    if not text:
        return None

    cleaned = _strip_fences(text)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Direct JSON parse failed: {e}, scanning for an embedded payload")

        if "Extra data" in str(e):
            merged = _parse_concatenated_objects(cleaned)
            if merged is not None:
                return merged

    for opener in ("{", "["):
        candidate = _first_balanced(cleaned, opener)
        if candidate is None:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    LOGGER.warning("No parseable JSON found in AI response", extra={"preview": cleaned[:200]})
    return None


def extract_json_array(text: str) -> Optional[List[Any]]:
    """Return the first JSON array found in text, or None.

    Args:
        text: AI response text

    Returns:
        The parsed list, or None if the text holds no array
    """
    if not text:
        return None

    cleaned = _strip_fences(text)
    candidate = _first_balanced(cleaned, "[")
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def _strip_fences(text: str) -> str:
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _first_balanced(text: str, opener: str) -> Optional[str]:
    """Find the first balanced {...} or [...] span, ignoring brackets in strings."""
    closer = "}" if opener == "{" else "]"
    start = text.find(opener)
    while start != -1:
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
        start = text.find(opener, start + 1)
    return None


def _parse_concatenated_objects(text: str) -> Optional[Dict[str, Any]]:
    """Merge objects emitted back to back, later keys winning."""
    decoder = json.JSONDecoder()
    merged: Dict[str, Any] = {}
    position = 0
    found = False

    while position < len(text):
        while position < len(text) and text[position].isspace():
            position += 1
        if position >= len(text):
            break
        try:
            value, position = decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            break
        if isinstance(value, dict):
            merged.update(value)
            found = True

    return merged if found else None

"""
JSON extraction from research-engine free text.

Engines are asked for "JSON only" but routinely wrap it in markdown fences or
surround it with prose. Extraction runs three pure stages in order:

    1. parse_direct       - the whole text is a JSON object
    2. parse_fenced_block - the first ```json ... ``` (or bare ```) block
    3. parse_brace_scan   - the first balanced {...} substring

`extract_json` returns the first dict produced, or None. It never raises:
a bad response is a soft failure for the caller to log and skip.
"""
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")


def _as_object(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def parse_direct(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    try:
        return _as_object(json.loads(text.strip()))
    except (json.JSONDecodeError, TypeError):
        return None


def parse_fenced_block(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    match = _FENCE_RE.search(text)
    if not match:
        return None
    try:
        return _as_object(json.loads(match.group(1).strip()))
    except json.JSONDecodeError:
        return None


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced {...} substring, ignoring braces inside strings."""
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
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_brace_scan(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    fragment = find_balanced_object(text)
    if fragment is None:
        return None
    try:
        return _as_object(json.loads(fragment))
    except json.JSONDecodeError:
        return None


STAGES: List[Callable[[str], Optional[Dict[str, Any]]]] = [
    parse_direct,
    parse_fenced_block,
    parse_brace_scan,
]


def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Run the three-stage fallback chain. Returns None if every stage fails."""
    if not text:
        return None
    for stage in STAGES:
        result = stage(text)
        if result is not None:
            return result
    logger.warning(f"Could not parse JSON from research response (length {len(text)}): {text[:200]!r}")
    return None

# services/json_recovery.py
"""
Lenient decoding of LLM output that is supposed to be one JSON object.

Models wrap the object in markdown fences, add chatter around it, or run out
of tokens half way through the restaurants list. The stages below are tried
in order and each only runs when the previous one failed:

1. strip fences, keep the first "{" .. last "}" span
2. strict json.loads
3. pad truncated coordinate decimals, append missing "]" / "}", parse again
4. drop the restaurants array entirely, parse again
5. give up with PlanParseError carrying a tail excerpt

This is string surgery tuned to how models truncate, not a JSON parser.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Tuple

log = logging.getLogger("travel")

PREVIEW_CHARS = 500

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_COORD_RE = re.compile(r'"(latitude|longitude)":\s*(-?\d+)\.(\d{1,5})(?=\s*[,\]}])')
_RESTAURANTS_RE = re.compile(r'"restaurants"\s*:\s*\[')

class PlanParseError(ValueError):
    def __init__(self, message: str, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt

@dataclass
class RecoveryReport:
    stage: str  # strict|repaired|restaurants_dropped
    original_length: int
    repaired_length: int

def strip_fences(text: str) -> str:
    t = _FENCE_RE.sub("", (text or "").strip())
    m = _OBJECT_RE.search(t)
    return m.group(0) if m else t

def pad_coordinate_decimals(text: str) -> str:
    """Right-pad latitude/longitude values with 1-5 decimals to 6 digits."""
    def _pad(m: re.Match) -> str:
        key, whole, frac = m.group(1), m.group(2), m.group(3)
        return f'"{key}": {whole}.{frac.ljust(6, "0")}'
    return _COORD_RE.sub(_pad, text)

def balance_brackets(text: str) -> str:
    """Append the closers a truncated document is missing, arrays first."""
    missing_brackets = text.count("[") - text.count("]")
    missing_braces = text.count("{") - text.count("}")
    if missing_brackets > 0:
        text += "]" * missing_brackets
    if missing_braces > 0:
        text += "}" * missing_braces
    return text

def truncate_restaurants(text: str) -> str | None:
    """Cut everything from the restaurants key on and close the object with an empty list."""
    m = _RESTAURANTS_RE.search(text)
    if not m:
        return None
    before = text[: m.start()].rstrip()
    if before and before[-1] not in ",{":
        before += ","
    return before + ' "restaurants": []}'

def _tail(text: str) -> str:
    return text[max(0, len(text) - PREVIEW_CHARS):]

def lenient_decode(text: str) -> Tuple[Dict[str, Any], RecoveryReport]:
    original_length = len(text or "")
    candidate = strip_fences(text)

    try:
        data = json.loads(candidate)
        return _ensure_object(data, candidate), RecoveryReport("strict", original_length, len(candidate))
    except json.JSONDecodeError:
        pass

    repaired = balance_brackets(pad_coordinate_decimals(candidate))
    try:
        data = json.loads(repaired)
        log.info("AI response repaired", extra={"original_length": original_length, "repaired_length": len(repaired)})
        return _ensure_object(data, repaired), RecoveryReport("repaired", original_length, len(repaired))
    except json.JSONDecodeError as second_error:
        log.error("JSON parsing failed after fixes: %s", second_error.msg)
        last_error = second_error

    truncated = truncate_restaurants(repaired)
    if truncated is not None:
        try:
            data = _ensure_object(json.loads(truncated), truncated)
            data["restaurants"] = []
            log.warning("AI response restaurants dropped to recover JSON", extra={"original_length": original_length})
            return data, RecoveryReport("restaurants_dropped", original_length, len(truncated))
        except json.JSONDecodeError:
            pass

    raise PlanParseError(
        "Failed to parse AI response. The response may be incomplete. "
        f"Error: {last_error}. Response preview: {_tail(repaired)}",
        excerpt=_tail(repaired),
    )

def _ensure_object(data: Any, text: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise PlanParseError(
            f"Failed to parse AI response. Expected a JSON object, got {type(data).__name__}. "
            f"Response preview: {_tail(text)}",
            excerpt=_tail(text),
        )
    return data

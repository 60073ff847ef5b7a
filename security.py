# security.py
"""
Input hardening for the TravelMind backend.

The destination string is interpolated verbatim into a long LLM prompt, so it
is sanitized and screened for prompt-injection phrasing before it gets there.
Also provides the response security headers (the helmet set) and a body-size
guard used by the request middleware.
"""
from __future__ import annotations

import re
import logging
from typing import List

from fastapi import HTTPException, Request

log = logging.getLogger("security")

PROMPT_INJECTION_PATTERNS = [
    # Direct instruction attempts
    r'\b(ignore|forget|disregard)\s+(previous|above|all|these|your)\s+(instructions?|prompts?|rules?)\b',
    r'\bignore\s+.*\binstructions?\b',
    r'\b(act|behave|pretend|roleplay)\s+as\s+(a|an)?\s*\w+',
    r'\b(you\s+are|now\s+you\s+are)\s+(a|an|now)\s*\w+',
    r'\bnow\s+(respond|answer|say|tell|write|generate)\b',

    # Role markers
    r'\bsystem\s*:',
    r'\bassistant\s*:',
    r'<\s*/?(system|assistant|user)\s*>',

    # Jailbreak attempts
    r'\b(jailbreak|bypass|override)\b',
    r'\breturn\s+(only\s+)?(the\s+)?(following|this)\s+json\b',

    # Code injection attempts
    r'```',
    r'\beval\s*\(',
    r'\bexec\s*\(',
    r'\b__import__\s*\(',

    # Encodings
    r'\\u[0-9a-fA-F]{4}',
    r'&#\d+;',
    r'%[0-9a-fA-F]{2}',
]

COMPILED_PATTERNS = [re.compile(pattern, re.IGNORECASE | re.MULTILINE) for pattern in PROMPT_INJECTION_PATTERNS]

def sanitize_input(text: str, max_length: int = 500) -> str:
    """
    Trim, length-check and neutralise a free-text field.

    Raises:
        ValueError: if the input is not a string or is too long.
    """
    if not isinstance(text, str):
        raise ValueError("Input must be a string")

    if len(text) > max_length:
        log.warning("Input length exceeded", extra={"length": len(text), "max_length": max_length})
        raise ValueError(f"Input too long. Maximum {max_length} characters allowed.")

    # Remove null bytes and control characters
    sanitized = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text.strip())
    sanitized = re.sub(r'\s+', ' ', sanitized).strip()
    # Quotes and angle brackets would break out of the JSON template in the prompt
    sanitized = sanitized.replace('"', "'")
    sanitized = sanitized.replace("<", "").replace(">", "")
    return sanitized

def detect_prompt_injection(text: str) -> tuple[bool, List[str]]:
    """
    Detect potential prompt injection attempts.

    Returns:
        Tuple of (is_suspicious, list_of_matched_patterns)
    """
    suspicious_patterns = []

    for i, pattern in enumerate(COMPILED_PATTERNS):
        if pattern.search(text):
            suspicious_patterns.append(PROMPT_INJECTION_PATTERNS[i])

    special_char_ratio = len(re.findall(r"[^\w\s,.'()-]", text)) / max(len(text), 1)
    if special_char_ratio > 0.3:
        suspicious_patterns.append("excessive_special_characters")

    return len(suspicious_patterns) > 0, suspicious_patterns

def validate_destination(destination: str) -> str:
    """
    Validate and sanitize a destination such as "Paris, France".

    Raises:
        ValueError: with a user-facing message when the destination is rejected.
    """
    clean_destination = sanitize_input(destination, max_length=100)

    is_suspicious, patterns = detect_prompt_injection(clean_destination)
    if is_suspicious:
        log.warning("Suspicious destination detected", extra={
            "destination": destination,
            "patterns": patterns
        })
        raise ValueError("Invalid destination. Please provide a valid city or location name.")

    # Any script counts, not only latin letters ("東京", "Zürich")
    if not re.search(r'[^\W\d_]', clean_destination):
        raise ValueError("Destination must contain letters")

    if len(clean_destination.split()) > 10:
        raise ValueError("Destination name too complex")

    return clean_destination

def security_headers_middleware():
    """
    Add security headers to responses.
    """
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "0"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = "default-src 'self'"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"

        return response

    return add_security_headers

class SecurityValidator:

    @staticmethod
    def validate_request_size(request_size: int, max_size: int = 1024 * 50):
        """Reject oversized bodies before they are parsed."""
        if request_size > max_size:
            log.warning("Request size too large", extra={"size": request_size, "max_size": max_size})
            raise HTTPException(
                status_code=413,
                detail=f"Request too large. Maximum {max_size} bytes allowed."
            )

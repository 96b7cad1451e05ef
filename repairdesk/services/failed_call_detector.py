"""
Failed Call Detector.

Spots chat messages from customers who tried to phone the shop and could
not get through, pulls contact details out of free text, and works out
what is still missing before a callback task can be created.
"""

from __future__ import annotations

import re
from typing import Optional

from repairdesk.schemas.classification import FailedCallDetection, UrgencyLevel
from repairdesk.schemas.conversation import CustomerInfo
from repairdesk.services.keyword_rules import (
    FAILED_CALL_PATTERNS,
    HIGH_URGENCY_WORDS,
    KNOWN_LOCATIONS,
    LOW_URGENCY_WORDS,
    matched_keywords,
    normalize_text,
)

MIN_PROBLEM_LENGTH = 5

# Indian mobile numbers: optional +91 / 91 / 0 prefix, 10 digits starting 6-9
PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?91[\s-]?|0)?([6-9]\d{4}[\s-]?\d{5})(?!\d)")
NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bmy name is ([a-z][a-z ]{1,40}?)(?=[,.!?]|\s+(?:and|my|from|in|at|i)\b|$)", re.IGNORECASE),
    # Without "my name is", only accept capitalized words to avoid "this is urgent"
    re.compile(r"\b(?i:this is|i'm|i am) ([A-Z][a-z]+(?: [A-Z][a-z]+)?)\b"),
)
INVALID_NAMES = frozenset(
    {"and", "phone", "number", "location", "problem", "is", "no", "my", "not", "calling",
     "trying", "having", "very", "so", "still", "waiting", "looking", "facing", "unable"}
)

MISSING_FIELD_PROMPTS: dict[str, str] = {
    "name": "Got it. What's your name?",
    "phone number": "Thanks. What's the best 10-digit number to reach you?",
    "location": "Thanks. Which area are you in?",
    "problem description": (
        "What's the specific problem with your AC or refrigerator? Please describe what's "
        "happening - is it not cooling, making noise, leaking, or something else?"
    ),
}
MISSING_FIELD_PHRASES: dict[str, str] = {
    "name": "your name",
    "phone number": "a 10-digit phone number",
    "location": "your location",
    "problem description": "the specific problem",
}


def detect_failed_call(message: str) -> FailedCallDetection:
    """Check a message for failed-call phrasing and collect urgency keywords."""
    text = normalize_text(message)

    extracted_context: Optional[str] = None
    for pattern in FAILED_CALL_PATTERNS:
        match = pattern.search(text)
        if match:
            extracted_context = match.group(0)
            break

    high_hits = matched_keywords(text, HIGH_URGENCY_WORDS)
    low_hits = matched_keywords(text, LOW_URGENCY_WORDS)

    if high_hits:
        suggested = UrgencyLevel.HIGH
    elif low_hits:
        suggested = UrgencyLevel.LOW
    else:
        suggested = UrgencyLevel.MEDIUM

    return FailedCallDetection(
        has_indicator=extracted_context is not None,
        matched_keywords=tuple(high_hits + low_hits),
        suggested_priority=suggested,
        extracted_context=extracted_context,
    )


def extract_phone(message: str) -> Optional[str]:
    match = PHONE_PATTERN.search(message or "")
    if not match:
        return None
    return re.sub(r"\D", "", match.group(1))


def extract_name(message: str) -> Optional[str]:
    for pattern in NAME_PATTERNS:
        match = pattern.search(message or "")
        if not match:
            continue
        candidate = " ".join(match.group(1).split())
        if candidate.lower() in INVALID_NAMES or len(candidate) < 2:
            continue
        return candidate.title()
    return None


def extract_location(message: str) -> Optional[str]:
    text = normalize_text(message)
    for location in KNOWN_LOCATIONS:
        if re.search(rf"\b{location}\b", text):
            return location.title()
    return None


def extract_customer_details(message: str) -> CustomerInfo:
    """Best-effort name / phone / location from a single message."""
    return CustomerInfo(
        name=extract_name(message),
        phone=extract_phone(message),
        location=extract_location(message),
    )


def identify_missing_fields(
    customer: CustomerInfo,
    problem_description: Optional[str],
    require_location: bool = True,
) -> list[str]:
    missing: list[str] = []
    if not customer.name:
        missing.append("name")
    if not customer.phone:
        missing.append("phone number")
    if require_location and not customer.location:
        missing.append("location")
    if not problem_description or len(problem_description.strip()) < MIN_PROBLEM_LENGTH:
        missing.append("problem description")
    return missing


def missing_info_request(missing_fields: list[str]) -> str:
    """Phrase one natural request for everything still missing."""
    if not missing_fields:
        return ""
    if len(missing_fields) == 1:
        field = missing_fields[0]
        return MISSING_FIELD_PROMPTS.get(field, f"Could you share {MISSING_FIELD_PHRASES.get(field, field)}?")

    phrases = [MISSING_FIELD_PHRASES.get(field, field) for field in missing_fields]
    if len(phrases) == 2:
        return f"Could you share {phrases[0]} and {phrases[1]}?"
    return f"Could you share {', '.join(phrases[:-1])}, and {phrases[-1]}?"

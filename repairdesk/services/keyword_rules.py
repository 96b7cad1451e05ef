"""
Keyword and pattern tables for the rule-based classifiers.

Everything here is immutable module data (tuples and frozen dataclasses),
so the tables can be shared by every classifier instance and request.
Priority tiers are listed from most to least urgent; the first tier with
a match wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from repairdesk.schemas.classification import Priority, ServiceType, Sentiment
from repairdesk.schemas.conversation import IntentName

# ── Priority tiers ───────────────────────────────────────────────


@dataclass(frozen=True)
class PriorityTier:
    name: str
    priority: Priority
    keywords: tuple[str, ...]
    reason_prefix: str
    tags: tuple[str, ...]


PRIORITY_TIERS: tuple[PriorityTier, ...] = (
    PriorityTier(
        name="urgent",
        priority=Priority.HIGH,
        keywords=(
            "emergency", "urgent", "immediately", "asap", "sparks", "smoke",
            "burning smell", "fire", "gas leak", "shock", "flooding", "completely dead",
        ),
        reason_prefix="Emergency situation detected",
        tags=("emergency", "urgent"),
    ),
    PriorityTier(
        name="high",
        priority=Priority.HIGH,
        keywords=(
            "not working", "stopped working", "not cooling", "no cooling", "no power",
            "broken", "water leak", "leaking", "overheating", "very hot", "breakdown", "tripping",
        ),
        reason_prefix="Major malfunction detected",
        tags=("high-priority", "service-request"),
    ),
    PriorityTier(
        name="medium",
        priority=Priority.MEDIUM,
        keywords=(
            "noise", "noisy", "intermittent", "sometimes", "weak cooling", "less cooling",
            "ice build", "error code", "vibrat", "repair", "service", "gas refill",
        ),
        reason_prefix="Standard service issue detected",
        tags=("standard", "service-request"),
    ),
    PriorityTier(
        name="low",
        priority=Priority.LOW,
        keywords=(
            "maintenance", "routine", "cleaning", "check", "inspection", "when convenient",
            "no rush", "whenever", "minor", "cosmetic", "quote", "information",
        ),
        reason_prefix="Routine request detected",
        tags=("routine", "maintenance"),
    ),
)

NO_INDICATOR_REASON = "Default priority assigned: no clear indicators found"
DEFAULT_TAGS: tuple[str, ...] = ("general-inquiry",)

# ── Context boosters ─────────────────────────────────────────────


@dataclass(frozen=True)
class ContextBooster:
    name: str
    keywords: tuple[str, ...]
    description: str
    tag: str


CONTEXT_BOOSTERS: tuple[ContextBooster, ...] = (
    ContextBooster(
        name="vulnerable_occupant",
        keywords=(
            "elderly", "old age", "senior citizen", "infant", "baby", "newborn", "sick",
            "heart patient", "pregnant", "bedridden", "children",
        ),
        description="vulnerable occupant",
        tag="vulnerable-occupant",
    ),
    ContextBooster(
        name="business_premises",
        keywords=(
            "shop", "restaurant", "hotel", "office", "business", "supermarket",
            "clinic", "hospital", "commercial", "customers waiting",
        ),
        description="business premises affected",
        tag="business-impact",
    ),
    ContextBooster(
        name="spoilage",
        keywords=("spoil", "food", "medicine", "insulin", "vaccine", "milk", "fish", "meat"),
        description="food or medicine spoilage risk",
        tag="spoilage-risk",
    ),
)

# ── Failed-call detection ────────────────────────────────────────

FAILED_CALL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"tried (?:calling|to call).*(?:no answer|didn't answer|did not answer|no response)",
        r"couldn't reach (?:you|anyone|the shop)",
        r"could not reach (?:you|anyone|the shop)",
        r"phone went to voicemail",
        r"no one (?:picked up|answered)",
        r"called but (?:didn't|did not) get through",
        r"attempted to call.*unsuccessful",
        r"failed to reach",
        r"unable to (?:contact|reach)",
        r"couldn't get through",
        r"called.*no response",
        r"dialed.*voicemail",
        r"(?:line|number) (?:was |is )?(?:busy|unreachable|switched off)",
        r"missed (?:my )?call",
        r"not answering",
        r"busy tone",
    )
)

FAILED_CALL_KEYWORDS: tuple[str, ...] = (
    "couldn't reach", "no answer", "line busy", "callback", "call back", "missed call",
    "not answering", "unreachable", "call failed", "busy tone",
)

HIGH_URGENCY_WORDS: tuple[str, ...] = ("emergency", "urgent", "critical", "asap", "immediately")
LOW_URGENCY_WORDS: tuple[str, ...] = ("when convenient", "no rush", "whenever")

# ── Interaction classification ───────────────────────────────────

SERVICE_REQUEST_KEYWORDS: tuple[str, ...] = (
    "repair", "fix", "service", "maintenance", "not working", "broken", "issue",
    "problem", "cooling", "heating", "leak", "noise", "parts",
)

IMMEDIATE_KEYWORDS: tuple[str, ...] = (
    "emergency", "urgent", "asap", "immediately", "critical", "stopped working",
)

SERVICE_TYPE_PATTERNS: tuple[tuple[ServiceType, re.Pattern[str]], ...] = (
    (ServiceType.AC_REPAIR, re.compile(r"\bac\b|air ?condition", re.IGNORECASE)),
    (ServiceType.REFRIGERATOR_REPAIR, re.compile(r"\b(?:fridge|refrigerator|freezer)\b", re.IGNORECASE)),
    (ServiceType.SPARE_PARTS, re.compile(r"\b(?:spare|parts?)\b", re.IGNORECASE)),
    (ServiceType.ELECTRONICS, re.compile(r"\b(?:electronics?|appliances?|washing machine|tv)\b", re.IGNORECASE)),
)

SENTIMENT_KEYWORDS: tuple[tuple[Sentiment, tuple[str, ...]], ...] = (
    (
        Sentiment.NEGATIVE,
        (
            "frustrated", "angry", "annoyed", "terrible", "worst", "disappointed",
            "fed up", "ridiculous", "unhappy", "useless", "tensed",
        ),
    ),
    (Sentiment.POSITIVE, ("thank", "appreciate", "great", "please", "kind", "happy")),
)

# ── Intent recognition ───────────────────────────────────────────


@dataclass(frozen=True)
class IntentRule:
    name: IntentName
    keywords: tuple[str, ...]
    patterns: tuple[re.Pattern[str], ...]
    weight: int


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Declaration order is the final tie-break after weight.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        name=IntentName.SPARE_PARTS_INQUIRY,
        keywords=("part", "parts", "spare", "component", "compressor", "thermostat", "filter", "coil", "capacitor"),
        patterns=_compile(r"spare.*part", r"part.*need", r"part.*buy", r"part.*order", r"part.*available", r"part.*price"),
        weight=3,
    ),
    IntentRule(
        name=IntentName.SERVICE_REQUEST,
        keywords=("repair", "fix", "service", "not working", "broken", "maintenance", "problem", "issue", "stopped working"),
        patterns=_compile(
            r"not cooling", r"making noise", r"need repair", r"not working",
            r"service.*required", r"stopped working", r"problem.*with", r"needs.*fixing",
        ),
        weight=3,
    ),
    IntentRule(
        name=IntentName.SALES_INQUIRY,
        keywords=("buy", "purchase", "price", "cost", "new", "second hand", "refurbished"),
        patterns=_compile(r"want to buy", r"how much", r"price of", r"available.*ac", r"available.*refrigerator"),
        weight=2,
    ),
    IntentRule(
        name=IntentName.BUSINESS_INFO,
        keywords=("location", "address", "hours", "contact", "phone", "whatsapp", "where"),
        patterns=_compile(r"where are you", r"contact details", r"phone number", r"your location", r"business hours"),
        weight=1,
    ),
    IntentRule(
        name=IntentName.EMERGENCY,
        keywords=("emergency", "urgent", "immediately", "asap", "critical", "urgent repair"),
        patterns=_compile(
            r"emergency.*repair", r"urgent.*repair", r"immediately.*need",
            r"as soon as possible", r"critical.*repair", r"emergency.*service",
        ),
        weight=4,
    ),
)

KEYWORD_SCORE = 0.5
PATTERN_SCORE = 1.0
CONFIDENCE_DIVISOR = 5.0

# ── Entity vocabularies (first match wins) ───────────────────────


def _word_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


APPLIANCE_TYPES: tuple[str, ...] = ("ac", "air conditioner", "refrigerator", "fridge", "freezer")
BRANDS: tuple[str, ...] = (
    "samsung", "lg", "whirlpool", "voltas", "blue star", "godrej", "haier",
    "daikin", "panasonic", "hitachi", "carrier", "lloyd",
)
URGENCY_ENTITY_KEYWORDS: tuple[str, ...] = ("emergency", "urgent", "immediately", "asap")
KNOWN_LOCATIONS: tuple[str, ...] = (
    "thiruvalla", "pathanamthitta", "kottayam", "alappuzha", "kollam",
    "ernakulam", "thrissur", "palakkad", "malappuram", "kerala",
)

ENTITY_VOCABULARIES: tuple[tuple[str, tuple[tuple[str, re.Pattern[str]], ...]], ...] = (
    ("appliance_type", tuple((t, _word_pattern(t)) for t in APPLIANCE_TYPES)),
    ("brand", tuple((b, _word_pattern(b)) for b in BRANDS)),
    ("location", tuple((loc, _word_pattern(loc)) for loc in KNOWN_LOCATIONS)),
)

# ── Escalation triggers ──────────────────────────────────────────

COMPLEX_TECHNICAL_KEYWORDS: tuple[str, ...] = (
    "installation", "warranty claim", "bulk order", "commercial", "dispute",
)
COMPLAINT_KEYWORDS: tuple[str, ...] = (
    "complaint", "dissatisfied", "unhappy", "poor service", "bad experience", "unsatisfactory",
)
HUMAN_REQUEST_KEYWORDS: tuple[str, ...] = (
    "speak to human", "talk to person", "human agent", "real person",
    "human representative", "speak to someone", "talk to a human",
)


def normalize_text(text: str) -> str:
    """Lower-case and fold typographic apostrophes so ``couldn’t`` matches ``couldn't``."""
    return (text or "").replace("’", "'").replace("‘", "'").lower()


def matched_keywords(text: str, keywords: tuple[str, ...]) -> list[str]:
    """Keywords found as substrings of an already-normalized text, in table order."""
    return [keyword for keyword in keywords if keyword in text]

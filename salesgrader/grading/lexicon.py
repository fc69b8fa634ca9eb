"""Phrase patterns shared by the metric extractor and rubric detectors."""

from __future__ import annotations

import re

FILLER_RX = re.compile(r"\b(?:um|uh|like|you know|so|basically|actually)\b", re.IGNORECASE)

VALUE_RX = re.compile(
    r"\b(?:benefit|value|save|saving|protect|safety|warrant|guarantee|results?|solve)\w*",
    re.IGNORECASE,
)

CLOSE_RX = re.compile(
    r"\b(?:can i (?:book|schedule|get you)|want to get started|ready to (?:move forward|get started)"
    r"|should i (?:schedule|put you down)|let'?s get (?:you started|this scheduled|you on the schedule)"
    r"|(?:sign|set) you up|which (?:day|time) works|when would you like|how about (?:tomorrow|monday|tuesday|wednesday|thursday|friday|saturday)"
    r"|get (?:you|it) (?:on the calendar|scheduled|booked)|book (?:you|it|an appointment)|first (?:service|visit|treatment))\b",
    re.IGNORECASE,
)

# Checked in order; the first matching style names the close.
CLOSING_STYLES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "assumptive",
        re.compile(
            r"which (?:works better|would you prefer)|two appointments|when would you|let'?s get (?:you started|this scheduled)",
            re.IGNORECASE,
        ),
    ),
    ("trial", re.compile(r"how does that sound|does that work|make sense|what do you think", re.IGNORECASE)),
    ("direct", re.compile(r"can i book|want to get started|ready to move forward|should i schedule", re.IGNORECASE)),
    ("alternative", re.compile(r"would you prefer|option a or b|morning or afternoon", re.IGNORECASE)),
    ("urgency", re.compile(r"today only|limited availability|book now|this week only", re.IGNORECASE)),
)

OBJECTION_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("price", re.compile(r"too expensive|pricey|costs? too much|that'?s a lot|can'?t afford|\$\s?\d+", re.IGNORECASE)),
    ("timing", re.compile(r"not a good time|\bbusy\b|\blater\b|come back|another day", re.IGNORECASE)),
    (
        "spouse",
        re.compile(
            r"(?:need to|gotta|have to) (?:ask|check with|talk to) (?:my|the) (?:husband|wife|spouse|partner)",
            re.IGNORECASE,
        ),
    ),
    (
        "competitor",
        re.compile(
            r"(?:we have|already (?:with|have)|using) (?:another|a different|a) (?:company|service|provider|guy)",
            re.IGNORECASE,
        ),
    ),
    ("think_about_it", re.compile(r"think about it|need to think|sleep on it|not sure", re.IGNORECASE)),
    ("diy", re.compile(r"do it myself|diy|spray (?:it )?myself|handle it myself", re.IGNORECASE)),
    ("bad_experience", re.compile(r"bad experience|didn'?t work|waste of money|got burned", re.IGNORECASE)),
    ("not_interested", re.compile(r"not interested|no thanks|don'?t need", re.IGNORECASE)),
)

ACKNOWLEDGE_RX = re.compile(
    r"\bi (?:hear|get|understand)\b|\btotally\b|\bmakes sense\b|\bthat'?s fair\b|\bgood question\b|\bgreat question\b",
    re.IGNORECASE,
)
ADDRESS_RX = re.compile(
    r"what we can do|here'?s how|the way we handle|we typically|the good news|what that means|that'?s why",
    re.IGNORECASE,
)
CLARIFY_RX = re.compile(r"\b(?:what|which|how|when|is it|is that|can i ask)\b[^?]*\?", re.IGNORECASE)
CONFIRM_RX = re.compile(r"does that (?:help|make sense|work)|how does that sound|fair enough\?|sound good", re.IGNORECASE)

RAPPORT_RX = re.compile(
    r"how'?s your day|how are you|nice to meet|appreciate|thank you|thanks for|love your|beautiful (?:home|yard|house)"
    r"|great question|i hear you|neighbor|i'?m glad",
    re.IGNORECASE,
)

GREETING_RX = re.compile(r"\b(?:hi|hello|hey|good (?:morning|afternoon|evening))\b", re.IGNORECASE)
INTRODUCTION_RX = re.compile(r"\bmy name is\b|\bi'?m \w+ (?:with|from)\b|\bwith \w+ (?:pest|services?|company)\b", re.IGNORECASE)
NEEDS_RX = re.compile(
    r"\b(?:problem|concern|issue|noticed|seeing|how often|how long|what (?:brings|matters)|worried)\b",
    re.IGNORECASE,
)
SAFETY_RX = re.compile(r"\b(?:safe|safety|kids?|children|pets?|family|dog|cat|non-toxic|eco)\w*", re.IGNORECASE)
PRICE_RX = re.compile(r"\$\s?\d+|\b(?:price|cost|per month|a month|monthly|investment|quarterly)\b", re.IGNORECASE)
PRICE_FRAMING_RX = re.compile(r"\b(?:only|just|less than|works out to|investment|worth|included)\b", re.IGNORECASE)
PRICE_DEFLECTION_RX = re.compile(
    r"depends on|we can talk about (?:price|that) later|don'?t worry about (?:the )?price|let'?s not get into price",
    re.IGNORECASE,
)
PRESSURE_RX = re.compile(r"you'?d be (?:crazy|foolish)|you have to decide now|last chance|everyone else (?:on|in)", re.IGNORECASE)
RUDE_RX = re.compile(r"\bshut up\b|\bwhatever\b|\bthat'?s stupid\b|\byou'?re wrong\b", re.IGNORECASE)

PROFANITY_RX = re.compile(r"\b(?:fuck\w*|shit\w*|bitch\w*|asshole\w*|bastard\w*|dickhead)\b", re.IGNORECASE)

SALE_CLOSED_RX = re.compile(
    r"\b(?:yes|yeah|sure|okay,? let'?s do it|book it|schedule me|sign me up|when can you"
    r"|i'?ll take it|sounds good,? (?:let'?s|when))\b",
    re.IGNORECASE,
)


def closing_style(text: str) -> str | None:
    for style, pattern in CLOSING_STYLES:
        if pattern.search(text):
            return style
    return None


def objection_kind(text: str) -> str | None:
    for kind, pattern in OBJECTION_PATTERNS:
        if pattern.search(text):
            return kind
    return None


def is_resolution(text: str) -> bool:
    return bool(ACKNOWLEDGE_RX.search(text) or ADDRESS_RX.search(text))


def is_close_attempt(text: str) -> bool:
    if CLOSE_RX.search(text):
        return True
    style = closing_style(text)
    return style is not None and style != "trial"

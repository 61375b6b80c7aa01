"""Pattern-based classification of confirmation utterances.

A reject/cancel token anywhere in the utterance wins: "no, that's wrong,
use 2 ETH" resets the command instead of silently applying the
correction. Acknowledging a security warning needs an explicit phrase;
a plain "yes" is not enough.
"""

from __future__ import annotations

import enum
import re


class Intent(str, enum.Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    ACKNOWLEDGE = "acknowledge"
    OTHER = "other"


_REJECT_RE = re.compile(
    r"\b(no|nope|nah|not|don'?t|do not|cancel|stop|abort|wrong|incorrect|negative|never ?mind)\b"
)
_ACKNOWLEDGE_RE = re.compile(
    r"\b(acknowledged?|i acknowledge|proceed anyway|continue anyway|"
    r"accept the risks?|i understand the risks?)\b"
)
_CONFIRM_RE = re.compile(
    r"\b(yes|yeah|yep|yup|correct|right|confirm(ed)?|affirmative|sure|ok(ay)?|"
    r"go ahead|execute|proceed|do it)\b"
)


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("’", "'").lower()).strip()


def classify_utterance(text: str) -> Intent:
    normalized = _normalize(text or "")
    if not normalized:
        return Intent.OTHER
    if _REJECT_RE.search(normalized):
        return Intent.REJECT
    if _ACKNOWLEDGE_RE.search(normalized):
        return Intent.ACKNOWLEDGE
    if _CONFIRM_RE.search(normalized):
        return Intent.CONFIRM
    return Intent.OTHER

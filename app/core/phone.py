"""Phone number normalization shared by providers and audience resolution."""

import re
from typing import Optional

MIN_DIGITS = 8
MAX_DIGITS = 15  # E.164 upper bound


def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """Reduce a phone number to the digits WhatsApp/SMS APIs expect.

    Rules:
    - Strip everything that is not a digit ("+", spaces, dashes, parentheses)
    - A leading international "00" prefix is dropped
    - Fewer than 8 or more than 15 digits → invalid (returns None)

    Examples:
        "+962 79 123 4567"  → "962791234567"
        "00962791234567"    → "962791234567"
        "1234"              → None
        "N/A"               → None
    """
    if not raw:
        return None

    digits = re.sub(r"\D", "", str(raw).strip())
    if digits.startswith("00"):
        digits = digits[2:]

    if not MIN_DIGITS <= len(digits) <= MAX_DIGITS:
        return None

    return digits

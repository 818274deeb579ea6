"""
Text checks applied to a listing before any media is stored.

Best-effort filtering of obviously disallowed text, not content moderation.
"""
import re
from typing import Optional, Protocol

from petdealz.errors import PolicyViolation

PHONE_NUMBER_RE = re.compile(r"\d{10,}")


class ContentPolicy(Protocol):
    def validate(self, description: str) -> Optional[PolicyViolation]:
        ...


class PhoneNumberPolicy:
    """Rejects descriptions containing a run of 10 or more digits."""

    rule = "no-phone-numbers"

    def validate(self, description: str) -> Optional[PolicyViolation]:
        if description and PHONE_NUMBER_RE.search(description):
            return PolicyViolation(self.rule, "Phone numbers are not allowed in the description.")
        return None

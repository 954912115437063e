"""Client-side validation for user drafts."""

from __future__ import annotations

import re
from typing import Dict, Optional

from .models import UserDraft

# Each character has a single way to match, so failures stay linear.
EMAIL_PATTERN = re.compile(r"^\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*\.\w{2,3}$", re.ASCII)

NAME_MIN_LENGTH = 2
AGE_MIN = 1
AGE_MAX = 150

_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


def parse_age(value: str) -> Optional[int]:
    """Return the integer age in ``value`` or ``None`` when it is not a whole number."""

    cleaned = value.strip()
    if not _INTEGER_PATTERN.match(cleaned):
        return None
    try:
        return int(cleaned)
    except ValueError:
        # Beyond the interpreter's integer string conversion limit.
        return None


def validate_user(draft: UserDraft) -> Dict[str, str]:
    """Map field names to error messages; an empty mapping means the draft is valid.

    Every rule runs even when an earlier one failed. A later rule for the same
    field replaces the earlier message.
    """

    errors: Dict[str, str] = {}

    name = draft.name.strip()
    if not name:
        errors["name"] = "Name is required"
    if len(name) < NAME_MIN_LENGTH:
        errors["name"] = f"Name must be at least {NAME_MIN_LENGTH} characters"

    email = draft.email.strip()
    if not email:
        errors["email"] = "Email is required"
    if not EMAIL_PATTERN.match(email):
        errors["email"] = "Invalid email format"

    if not draft.age.strip():
        errors["age"] = "Age is required"
    else:
        age = parse_age(draft.age)
        if age is None:
            errors["age"] = "Age must be a whole number"
        elif age < AGE_MIN or age > AGE_MAX:
            errors["age"] = f"Age must be between {AGE_MIN} and {AGE_MAX}"

    return errors


__all__ = ["EMAIL_PATTERN", "parse_age", "validate_user"]

"""
Input validators: framework-agnostic, pure functions.

Email deliverability needs DNS and therefore lives in
infrastructure/email_validation.py; everything here is offline.
"""

from __future__ import annotations

import re
from typing import List, Tuple

_SPECIAL_CHARS = r'[!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>\/?~`]'
_SAFE_CHARS = r'^[a-zA-Z0-9!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>\/?~`\s]+$'


def normalize_email(email: str) -> str:
    """Return the case-insensitive lookup key for *email*."""
    return (email or "").strip().lower()


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """Validate a new account password.

    Rules:
    - 8 to 128 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character
    - Only printable ASCII letters, digits, specials and whitespace

    Returns:
        ``(is_valid, missing_requirements)``; the list is empty when valid.
    """
    if not password:
        return False, ["Password is required"]

    missing = []

    if len(password) < 8:
        missing.append("At least 8 characters")
    if len(password) > 128:
        missing.append("Maximum 128 characters")
    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")
    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")
    if not re.search(r"[0-9]", password):
        missing.append("At least one number")
    if not re.search(_SPECIAL_CHARS, password):
        missing.append("At least one special character")
    if not re.match(_SAFE_CHARS, password):
        missing.append("Contains invalid characters")

    return len(missing) == 0, missing


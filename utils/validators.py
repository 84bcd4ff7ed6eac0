"""
Credential validation helpers.
- validate_email: permissive local@domain.tld check (not full RFC 5322)
- validate_password: strength rules, every rule evaluated independently
"""
from __future__ import annotations

import re
from typing import FrozenSet, NamedTuple, Optional

MIN_PASSWORD_LENGTH = 8

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

# rule name -> (check, message fragment); order drives the rendered message
PASSWORD_RULES = (
    ("min_length", lambda p: len(p) >= MIN_PASSWORD_LENGTH,
     f"be at least {MIN_PASSWORD_LENGTH} characters long"),
    ("has_uppercase", lambda p: re.search(r"[A-Z]", p) is not None,
     "have at least one uppercase letter"),
    ("has_lowercase", lambda p: re.search(r"[a-z]", p) is not None,
     "have at least one lowercase letter"),
    ("has_number", lambda p: re.search(r"[0-9]", p) is not None,
     "have at least one number"),
    ("has_special_char", lambda p: any(ch in SPECIAL_CHARACTERS for ch in p),
     "have at least one special character"),
)


class EmailValidationResult(NamedTuple):
    is_valid: bool
    error: Optional[str] = None


class PasswordValidationResult(NamedTuple):
    is_valid: bool
    errors: FrozenSet[str] = frozenset()


def validate_email(email: Optional[str]) -> EmailValidationResult:
    if not email:
        return EmailValidationResult(False, "Email is required")
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
        return EmailValidationResult(False, "Invalid email format")
    return EmailValidationResult(True)


def validate_password(password: Optional[str]) -> PasswordValidationResult:
    """Check a password against every strength rule.

    The result lists all failed rules, not only the first one.
    """
    password = password if isinstance(password, str) else ""
    failed = frozenset(name for name, check, _ in PASSWORD_RULES if not check(password))
    return PasswordValidationResult(not failed, failed)


def password_error_message(errors) -> str:
    requirements = [message for name, _, message in PASSWORD_RULES if name in errors]
    if not requirements:
        return "Password does not meet security requirements"
    return "Password must " + ", ".join(requirements)

# backend/crossborder/services/validation.py
"""
Input checks shared by registration, profile and booking endpoints.

Each check returns an error message (str) or None, so callers can collect
field-keyed errors instead of failing on the first one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Loose format used on profile/registration forms: digits, spaces, dashes, parens
PHONE_RE = re.compile(r"^\+?[\d\s\-\(\)]{8,}$")
# E.164-style format used by the booking contact step
E164_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
SPECIAL_RE = re.compile(r"[^A-Za-z0-9]")


@dataclass
class PasswordStrength:
    score: int
    valid: bool
    feedback: List[str] = field(default_factory=list)


def password_strength(password: str) -> PasswordStrength:
    """
    One point each for: length >= 8, lowercase, uppercase, digit, special char.
    A score of 4 or more is considered acceptable.
    """
    pw = password or ""
    score = 0
    feedback: List[str] = []

    if len(pw) >= 8:
        score += 1
    else:
        feedback.append("At least 8 characters")

    if re.search(r"[a-z]", pw):
        score += 1
    else:
        feedback.append("One lowercase letter")

    if re.search(r"[A-Z]", pw):
        score += 1
    else:
        feedback.append("One uppercase letter")

    if re.search(r"\d", pw):
        score += 1
    else:
        feedback.append("One number")

    if SPECIAL_RE.search(pw):
        score += 1
    else:
        feedback.append("One special character")

    return PasswordStrength(score=score, valid=score >= 4, feedback=feedback)


def check_password(password: str) -> Optional[str]:
    """Registration rule: 8+ chars with lowercase, uppercase and a digit."""
    pw = password or ""
    if len(pw) < 8:
        return "Password must be at least 8 characters"
    if not re.search(r"[a-z]", pw) or not re.search(r"[A-Z]", pw) or not re.search(r"\d", pw):
        return "Password must contain uppercase, lowercase, and number"
    return None


def check_email(email: str) -> Optional[str]:
    if not (email or "").strip():
        return "Email is required"
    if not EMAIL_RE.match(email.strip()):
        return "Invalid email address"
    return None


def check_name(name: str) -> Optional[str]:
    n = (name or "").strip()
    if len(n) < 2:
        return "Name must be at least 2 characters"
    if len(n) > 100:
        return "Name must be less than 100 characters"
    return None


def check_phone(phone: Optional[str], *, strict: bool = False) -> Optional[str]:
    if not phone:
        return None
    pattern = E164_RE if strict else PHONE_RE
    if not pattern.match(phone.strip()):
        return "Invalid phone number"
    return None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

from __future__ import annotations

import re
from typing import Any, List

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$")
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


def sanitize_string(value: str) -> str:
    return (value or "").strip().replace("<", "").replace(">", "")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match((email or "").strip()))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match((phone or "").strip()))


def password_problems(password: str) -> List[str]:
    """
    Human-readable list of unmet password rules (empty list means valid).
    """
    pw = password or ""
    problems: List[str] = []
    if len(pw) < 8:
        problems.append("Must be at least 8 characters long")
    if not re.search(r"[A-Z]", pw):
        problems.append("Must contain an uppercase letter")
    if not re.search(r"[a-z]", pw):
        problems.append("Must contain a lowercase letter")
    if not re.search(r"\d", pw):
        problems.append("Must contain a number")
    if not _SPECIAL_RE.search(pw):
        problems.append("Must contain a special character")
    return problems


def is_not_empty(value: str) -> bool:
    return len(sanitize_string(value)) > 0


def is_valid_address(address: str) -> bool:
    return len(sanitize_string(address)) >= 10


def is_valid_price(price: Any) -> bool:
    try:
        num = float(price)
    except (TypeError, ValueError):
        return False
    # NaN compares false to everything
    return num == num and num >= 0

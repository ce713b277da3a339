"""Shared validation utilities"""

import re
import uuid
from datetime import date, datetime
from typing import Optional


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a caller phone number to E.164 format.

    10-digit numbers are treated as US numbers; numbers written with a
    leading "+" keep their country code.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number in E.164 format

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    has_plus = phone.strip().startswith("+")

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    if has_plus:
        if not 8 <= len(digits) <= 15:
            raise ValueError("International phone numbers must have 8 to 15 digits")
        return f"+{digits}"

    # Handle 1 prefix
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_date_string(value: Optional[str]) -> Optional[str]:
    """Validate a YYYY-MM-DD calendar date"""
    if value is None:
        return value
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date: {value}") from e
    return value


def validate_time_string(value: Optional[str]) -> Optional[str]:
    """Validate a 24h HH:MM wall-clock time"""
    if value is None:
        return value
    if not re.fullmatch(r"\d{2}:\d{2}", value):
        raise ValueError("Time must be in HH:MM format")
    try:
        datetime.strptime(value, "%H:%M")
    except ValueError as e:
        raise ValueError(f"Invalid time: {value}") from e
    return value

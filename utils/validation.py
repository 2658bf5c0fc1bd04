"""Validation utilities for user input.

Records are validated here, before they reach the replica; nothing past this
point re-checks them.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from constants import MAX_AMOUNT, MAX_DESCRIPTION_LENGTH
from models import Category, quantize_amount
from utils.date_utils import parse_date
from utils.logging import logger


def validate_amount(value: str | Decimal | float | int) -> tuple[bool, Decimal | str]:
    """
    Validate an amount and convert it to a Decimal rounded to cents (half up).

    Args:
        value: The amount as typed by the user or as a number

    Returns:
        Tuple of (is_valid, amount_or_error_message)
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        logger.debug("Empty amount validation failed")
        return False, "Amount cannot be empty"

    if isinstance(value, str):
        # Allow commas as decimal separators
        text = value.strip().replace(",", ".")
        if not re.match(r"^\d+(\.\d+)?$", text):
            logger.debug(f"Amount validation failed: '{text}' is not a positive number")
            return False, "Amount must be a positive number (e.g., 10, 10.50)"
        value = text

    try:
        amount = quantize_amount(value)
    except (InvalidOperation, ValueError):
        logger.debug(f"Amount validation failed: '{value}' could not be converted")
        return False, "Unable to convert amount to a number"

    if not amount.is_finite() or amount <= 0:
        logger.debug(f"Amount validation failed: '{amount}' is not positive")
        return False, "Amount must be greater than zero"

    if amount > MAX_AMOUNT:
        logger.debug(f"Amount validation failed: '{amount}' exceeds reasonable limit")
        return False, "Amount seems too large. Please enter a reasonable value."

    logger.debug(f"Amount '{amount}' validated successfully")
    return True, amount


def validate_category(value: str | Category) -> tuple[bool, Category | str]:
    """Validate a category against the fixed set of categories."""
    if isinstance(value, Category):
        return True, value
    if not value or not value.strip():
        logger.debug("Empty category validation failed")
        return False, "Category cannot be empty"

    try:
        category = Category(value.strip().lower())
    except ValueError:
        logger.debug(f"Category validation failed: '{value}' is not a known category")
        allowed = ", ".join(c.value for c in Category)
        return False, f"Unknown category '{value}'. Choose one of: {allowed}"

    return True, category


def validate_description(description: str, max_length: int = MAX_DESCRIPTION_LENGTH) -> tuple[bool, str]:
    """
    Validate an expense description.

    Returns:
        Tuple of (is_valid, cleaned_description_or_error_message)
    """
    cleaned = (description or "").strip()
    if not cleaned:
        logger.debug("Empty description validation failed")
        return False, "Description cannot be empty"

    if len(cleaned) > max_length:
        logger.debug(f"Description validation failed: length {len(cleaned)} exceeds max {max_length}")
        return False, f"Description too long (maximum {max_length} characters)"

    return True, cleaned


def validate_date(value: str | date, today: date | None = None) -> tuple[bool, date | str]:
    """
    Validate the date an expense occurred. Backdating is allowed, future dates are not.

    Returns:
        Tuple of (is_valid, date_or_error_message)
    """
    today = today or date.today()
    if isinstance(value, date):
        spent_on = value
    else:
        if not value or not value.strip():
            logger.debug("Empty date validation failed")
            return False, "Date cannot be empty"
        try:
            spent_on = parse_date(value)
        except ValueError as e:
            logger.debug(f"Date validation failed for '{value}': {e}")
            return False, str(e)

    if spent_on > today:
        logger.debug(f"Date validation failed: {spent_on} is in the future")
        return False, "Date cannot be later than today"

    if spent_on.year < today.year - 100:
        logger.debug(f"Date validation failed: {spent_on} is too far in the past")
        return False, f"Date {spent_on} seems far in the past. Please check for typos."

    return True, spent_on

"""Utility functions for generating group join codes."""

import secrets
import string
from typing import Optional

from housemate.config import settings

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_join_code(length: Optional[int] = None) -> str:
    """
    Generate a random join code using uppercase letters and digits.

    Args:
        length: Length of the join code (default: settings.JOIN_CODE_LENGTH)

    Returns:
        Random join code string

    Example:
        >>> code = generate_join_code()
        >>> len(code)
        4
        >>> code = generate_join_code(6)
        >>> len(code)
        6
    """
    if length is None:
        length = settings.JOIN_CODE_LENGTH
    return ''.join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def normalize_join_code(code: str) -> str:
    """Join codes are matched case-insensitively."""
    return code.strip().upper()

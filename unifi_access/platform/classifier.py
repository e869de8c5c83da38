"""
Sentinel detection for raw controller responses.

The enrollment status endpoint reports two conditions in a shape that does
not match the standard envelope. They are recognized here, by substring,
before any JSON parsing is attempted. If the vendor changes how these
conditions are reported, this is the place to update.
"""

from enum import Enum
from typing import Optional


class Sentinel(str, Enum):
    # The enrollment session expired or was closed
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    # The session exists but no card has been tapped yet
    TOKEN_EMPTY = "TOKEN_EMPTY"


# Checked in order, a body carrying both markers is a closed session
SENTINEL_PRIORITY = (Sentinel.SESSION_NOT_FOUND, Sentinel.TOKEN_EMPTY)


def classify_response(raw: str) -> Optional[Sentinel]:
    """
    Find the sentinel marker in a raw body, if any.

    Args:
        raw (str): The raw response body.

    Returns:
        Optional[Sentinel]: The matching sentinel, or None for bodies that
        should go through envelope decoding.
    """
    for sentinel in SENTINEL_PRIORITY:
        if sentinel.value in raw:
            return sentinel
    return None

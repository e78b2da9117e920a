"""
Utility functions for hashing, serialization and display formatting.
"""

import hashlib
import json
from typing import Any


def calculate_sha256(data: bytes) -> str:
    """
    Calculate SHA256 hash of data.

    Args:
        data: Bytes to hash

    Returns:
        Hexadecimal hash string
    """
    return hashlib.sha256(data).hexdigest()


def short_hash(full_hash: str, length: int = 16) -> str:
    """
    Get a shortened version of a hash for display.

    Args:
        full_hash: Full hash string
        length: Number of characters to return

    Returns:
        Shortened hash string
    """
    if not full_hash:
        return ''
    return full_hash[:length]


def stable_json(data: Any) -> str:
    """Serialize to JSON with sorted keys so equal data hashes equally."""
    return json.dumps(data, indent=2, sort_keys=True)


def format_progress(index: int, total: int) -> str:
    """Format a 0-based step index as 'current/total'."""
    return f'{index + 1}/{total}'


def mask_identifier(value: str, visible: int = 3) -> str:
    """
    Mask all but the last characters of an identifier for logs.

    Args:
        value: Identifier such as a roll number
        visible: Number of trailing characters left readable

    Returns:
        Masked string, e.g. '*****123'
    """
    if not value:
        return ''
    if len(value) <= visible:
        return '*' * len(value)
    return '*' * (len(value) - visible) + value[-visible:]

"""
Shape checks shared by the entity models and the request layer.
"""

from typing import Any


def is_text(value: Any) -> bool:
    """
    True for a str that can be written to a UTF-8 snapshot.

    JSON accepts lone surrogates such as "\\ud800", but they cannot be
    encoded, so they are rejected here rather than at save time.
    """
    if not isinstance(value, str):
        return False
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True

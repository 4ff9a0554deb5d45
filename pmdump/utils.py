"""Small helpers for paths, files and identifiers."""

from __future__ import annotations

import os
import stat
import uuid

_INBOX = "inbox"
_HOME = "home"


def is_readable_file(path: str) -> bool:
    """Return True if ``path`` is an existing regular file that can be opened."""
    try:
        info = os.stat(path)
    except OSError:
        return False
    if not stat.S_ISREG(info.st_mode):
        return False
    try:
        with open(path, "rb"):
            pass
    except OSError:
        return False
    return True


def without_inbox_prefix(path: str) -> str:
    """Strip the leading ``inbox`` from a breadcrumb path."""
    return path[len(_INBOX):]


def without_home_prefix(path: str) -> str:
    """Strip the leading ``home`` from a breadcrumb path."""
    return path[len(_HOME):]


def uuid_to_str(value: uuid.UUID) -> str:
    """Return a UUID as 32 hex digits without hyphens."""
    if not isinstance(value, uuid.UUID):
        raise TypeError(f"expected a UUID, got {type(value).__name__}")
    return str(value).replace("-", "")
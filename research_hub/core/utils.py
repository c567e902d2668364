"""
Shared utility functions for the research hub.

This module contains common utilities used across the codebase.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone

# Resource ids are opaque strings; this is the shape every store accepts.
_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_\-]{0,63}")


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.
    
    Args:
        prefix: Optional prefix (e.g., "proj", "task", "cmt")
        
    Returns:
        A unique ID like "proj_a1b2c3d4e5f6"
    """
    uid = uuid.uuid4().hex[:12]
    return f"{prefix}_{uid}" if prefix else uid


def is_valid_id(value: object) -> bool:
    """Check that a value is a syntactically valid resource identifier."""
    return isinstance(value, str) and _ID_PATTERN.fullmatch(value) is not None


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)

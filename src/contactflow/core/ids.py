"""Opaque identifier generation."""

from __future__ import annotations

import secrets
import string
from datetime import datetime

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: str, now: datetime, random_length: int = 8) -> str:
    """``<prefix>_<epoch-ms>_<random base36>``, e.g. ``sess_contact_1718000000000_k3j9x0qa``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(random_length))
    return f"{prefix}_{int(now.timestamp() * 1000)}_{suffix}"


def generate_business_id(prefix: str = "CONT") -> str:
    return f"{prefix}-{secrets.randbelow(1_000_000):06d}"

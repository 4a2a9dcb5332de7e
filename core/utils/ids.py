"""
Centralized id generation for locally synthesized records.

Ids are a millisecond timestamp hex prefix followed by a uuid4 suffix, so
records created in the same process sort roughly by creation time.
"""

from __future__ import annotations

import time
from uuid import uuid4


def generate_local_id() -> str:
    """Generate a time-prefixed, globally unique id."""
    ts_ms = int(time.time() * 1000)
    return f"{ts_ms:013x}-{str(uuid4())[13:]}"

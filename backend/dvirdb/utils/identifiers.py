from __future__ import annotations

import os
import random
import string
import time
import uuid
from datetime import datetime
from typing import Optional


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    UUIDv7 layout per draft:
    - 48-bit Unix timestamp in milliseconds
    - 4-bit version (0b0111)
    - 74-bit randomness

    Used as the primary key default for defects, inspections and audit
    events so that ids sort roughly by creation time.
    """
    ts_ms = int(time.time() * 1000)
    ts_bytes = ts_ms.to_bytes(6, "big", signed=False)
    rand_bytes = os.urandom(10)
    raw = bytearray(ts_bytes + rand_bytes)
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def generate_inspection_number(when: Optional[datetime] = None) -> str:
    """
    Human-friendly DVIR number like 'DVIR-20260117-7K2Q9X'.

    The date part is the inspection date; the suffix only has to be unique
    enough for people reading it off a clipboard, the real key is the UUID.
    """
    stamp = (when or datetime.utcnow()).strftime("%Y%m%d")
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"DVIR-{stamp}-{suffix}"

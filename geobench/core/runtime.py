# geobench/core/runtime.py
"""
Server Runtime Identity

A UUID4 generated at import time identifies this server run. All state is
process-lifetime only, so clients compare runtime IDs to detect a restart
(and with it the loss of history).
"""

import uuid
from datetime import datetime

RUNTIME_ID: str = str(uuid.uuid4())

RUNTIME_START: datetime = datetime.now()


def get_runtime_info() -> dict:
    """Return a dict with runtime ID and start time for embedding in responses."""
    return {
        "runtime_id": RUNTIME_ID,
        "started_at": RUNTIME_START.isoformat(),
        "uptime_seconds": (datetime.now() - RUNTIME_START).total_seconds(),
    }

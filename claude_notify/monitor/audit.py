"""
Structured audit trail of every state-machine decision.

One JSON object per line. Diagnostic only: nothing in the engine reads it
back, and write failures never propagate.
"""

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only JSONL sink. With path=None every record() is a no-op write."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self.run_id: str = str(uuid.uuid4())[:8]
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def record(
        self,
        event: str,
        state: dict,
        context: Optional[dict] = None,
        decision: Optional[str] = None,
    ) -> dict[str, Any]:
        """Record one decision point and return the entry."""
        entry = {
            "ts": datetime.now().isoformat(),
            "run_id": self.run_id,
            "event": event,
            "state": state,
            "context": context or {},
            "decision": decision,
        }
        if self.path is None:
            return entry

        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a") as f:
                    f.write(json.dumps(entry, default=str) + "\n")
            except Exception as e:
                logger.debug(f"Audit write failed: {e}")
        return entry

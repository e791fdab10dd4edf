"""Worker status documents and their file store."""

from .models import StatusValue, SubagentState, SubagentStatus, WorkerStatus, known_statuses
from .store import StatusStore

__all__ = [
    "StatusStore",
    "StatusValue",
    "SubagentState",
    "SubagentStatus",
    "WorkerStatus",
    "known_statuses",
]

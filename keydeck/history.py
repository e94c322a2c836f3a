# keydeck/history.py

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 50


@dataclass
class HistoryEntry:
    label: str
    command: str
    kind: str  # 'shell' | 'callback' | 'async' | 'parallel'
    exit_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class HistoryLog:
    """Bounded list of recently executed commands, newest first."""

    def __init__(self, max_entries: int = MAX_HISTORY_SIZE):
        self.max_entries = max(1, int(max_entries))
        self._entries: List[HistoryEntry] = []

    def add(self, label: str, command: str, kind: str, exit_code: Optional[int] = None) -> HistoryEntry:
        entry = HistoryEntry(label=label, command=command, kind=kind, exit_code=exit_code)
        self._entries.insert(0, entry)
        if len(self._entries) > self.max_entries:
            del self._entries[self.max_entries:]
        logger.debug(f"History entry recorded: {label} ({kind}) -> {exit_code}")
        return entry

    def entries(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        if limit is None:
            return list(self._entries)
        return self._entries[:limit]

    def clear(self):
        self._entries = []

    def __len__(self):
        return len(self._entries)

import json
import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from PySide6 import QtCore

from .config import ClipboardSettings, HISTORY_PATH

logger = logging.getLogger(__name__)


@dataclass
class ClipItem:
    text: str
    ts: float  # epoch seconds
    id: str = ''

    @property
    def dt(self) -> datetime:
        return datetime.fromtimestamp(self.ts)


class HistoryStore(QtCore.QObject):
    """Bounded clipboard history, newest entry first."""

    changed = QtCore.Signal()
    cleared = QtCore.Signal()

    def __init__(self, settings: ClipboardSettings, path: Optional[Path] = HISTORY_PATH):
        super().__init__()
        self.settings = settings
        self.path = path
        self.items: List[ClipItem] = []
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._load()

    def texts(self) -> List[str]:
        return [it.text for it in self.items]

    def add(self, text: str) -> bool:
        """
        Insert text as the newest entry.

        With deduplication on, an earlier occurrence of the same text is
        removed first. Entries past hist_size are evicted oldest first.

        Returns:
            True if the history changed
        """
        if not text:
            return False
        if self.settings.deduplicate:
            self.items = [it for it in self.items if it.text != text]
        self.items.insert(0, ClipItem(text=text, ts=datetime.now().timestamp(), id=uuid.uuid4().hex))
        del self.items[self.settings.hist_size:]
        self._save()
        self.changed.emit()
        return True

    def remove_newest(self) -> Optional[ClipItem]:
        if not self.items:
            return None
        it = self.items.pop(0)
        self._save()
        self.changed.emit()
        return it

    def delete_indices(self, rows: List[int]):
        for r in sorted(set(rows), reverse=True):
            if 0 <= r < len(self.items):
                self.items.pop(r)
        self._save()
        self.changed.emit()

    def delete_id(self, item_id: str) -> bool:
        for row, it in enumerate(self.items):
            if it.id == item_id:
                self.delete_indices([row])
                return True
        return False

    def clear(self):
        self.items.clear()
        self._save()
        self.cleared.emit()
        self.changed.emit()

    def _save(self):
        if self.path is None:
            return
        data = [asdict(i) for i in self.items]
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"Failed to save clipboard history to {self.path}: {e}")

    def _load(self):
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable clipboard history {self.path}: {e}")
            self.items = []
            return
        items: List[ClipItem] = []
        for d in data if isinstance(data, list) else []:
            if not isinstance(d, dict):
                continue
            text, ts = d.get('text'), d.get('ts', 0.0)
            if not isinstance(text, str) or not text:
                continue
            if isinstance(ts, bool) or not isinstance(ts, (int, float)):
                logger.debug(f"Skipping history entry with bad timestamp {ts!r}")
                continue
            item_id = d.get('id')
            items.append(ClipItem(
                text=text,
                ts=float(ts),
                id=item_id if isinstance(item_id, str) and item_id else uuid.uuid4().hex,
            ))
        self.items = items[:self.settings.hist_size]
        logger.debug(f"Loaded {len(self.items)} clipboard entries from {self.path}")

import logging
from typing import Callable, Optional

from PySide6 import QtCore

from .config import ClipboardSettings
from .history import HistoryStore
from .pasteboard import PasteboardSnapshot

logger = logging.getLogger(__name__)


class ClipboardWatcher(QtCore.QObject):
    """Polls the pasteboard change counter and feeds new text into the history."""

    paste_on_select_changed = QtCore.Signal(bool)

    def __init__(self, pasteboard, store: HistoryStore, settings: ClipboardSettings,
                 type_text: Optional[Callable[[str], None]] = None):
        super().__init__()
        self.pasteboard = pasteboard
        self.store = store
        self.settings = settings
        if type_text is None:
            from .keys import type_text
        self._type_text = type_text

        # Whatever is on the pasteboard at launch is not recorded
        self._last_change = self.pasteboard.change_count()

        self._timer = QtCore.QTimer(self)
        self._timer.timeout.connect(self.check_and_store)

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(self):
        if self._timer.isActive():
            return
        self._timer.setInterval(int(self.settings.frequency * 1000))
        self._timer.start()
        logger.debug(f"Polling pasteboard every {self.settings.frequency}s")

    def stop(self):
        self._timer.stop()

    @QtCore.Slot()
    def check_and_store(self) -> bool:
        """
        Store the pasteboard text if it changed since the last poll.

        Returns:
            True if a new entry went into the history
        """
        now = self.pasteboard.change_count()
        if now == self._last_change:
            return False
        self._last_change = now
        snap = self.pasteboard.snapshot()
        if not snap.text:
            return False
        if not self.should_be_stored(snap):
            return False
        return self.pasteboard_to_clipboard(snap.text)

    def should_be_stored(self, snap: PasteboardSnapshot) -> bool:
        if self.settings.honor_ignoredidentifiers:
            hits = snap.types & set(self.settings.ignored_identifiers)
            if hits:
                logger.debug(f"Skipping pasteboard content tagged {sorted(hits)}")
                return False
        if self.settings.max_size and len(snap.text or '') > self.settings.max_entry_size:
            logger.debug(f"Skipping pasteboard content longer than {self.settings.max_entry_size}")
            return False
        return True

    def pasteboard_to_clipboard(self, text: str) -> bool:
        return self.store.add(text)

    def select(self, text: str):
        """Copy a history entry back to the pasteboard, typing it out if configured."""
        self.pasteboard.set_text(text)
        if self.settings.paste_on_select:
            self._type_text(text)

    def clear_last_item(self):
        self.store.remove_newest()

    def clear_all(self):
        self.store.clear()
        self.pasteboard.clear()
        self._last_change = self.pasteboard.change_count()

    def toggle_paste_on_select(self) -> bool:
        self.settings.paste_on_select = not self.settings.paste_on_select
        logger.info(f"Paste on select {'enabled' if self.settings.paste_on_select else 'disabled'}")
        self.paste_on_select_changed.emit(self.settings.paste_on_select)
        return self.settings.paste_on_select

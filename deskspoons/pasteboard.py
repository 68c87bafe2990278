import sys
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from PySide6 import QtCore, QtGui


@dataclass(frozen=True)
class PasteboardSnapshot:
    change_count: int
    text: Optional[str] = None
    types: FrozenSet[str] = field(default_factory=frozenset)


class QtPasteboard(QtCore.QObject):
    """
    Pasteboard backed by QClipboard.

    Qt has no native change counter, so one is kept here and bumped on
    every dataChanged signal. Content-type tags are the mime formats.
    """

    def __init__(self, clipboard: QtGui.QClipboard):
        super().__init__()
        self.clip = clipboard
        self._count = 0
        self.clip.dataChanged.connect(self._on_changed)

    @QtCore.Slot()
    def _on_changed(self):
        self._count += 1

    def change_count(self) -> int:
        return self._count

    def snapshot(self) -> PasteboardSnapshot:
        md = self.clip.mimeData()
        types = frozenset(md.formats()) if md else frozenset()
        text = md.text() if md and md.hasText() else None
        return PasteboardSnapshot(change_count=self._count, text=text or None, types=types)

    def set_text(self, text: str):
        self.clip.setText(text)

    def clear(self):
        self.clip.clear()


def create_pasteboard(app: QtGui.QGuiApplication):
    """Native NSPasteboard on macOS, QClipboard elsewhere."""
    if sys.platform == "darwin":
        from .mac import MacPasteboard
        return MacPasteboard()
    return QtPasteboard(app.clipboard())

import sys
from typing import Optional

from PySide6 import QtCore, QtGui, QtWidgets

from .config import ClipboardSettings
from .history import HistoryStore, ClipItem

ITEM_ID_ROLE = QtCore.Qt.ItemDataRole.UserRole + 1


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len].rstrip() + "…"


def time_chip_text(it: ClipItem, now: Optional[float] = None) -> str:
    if now is None:
        now = QtCore.QDateTime.currentDateTime().toSecsSinceEpoch()
    secs = int(now - it.ts)
    if secs < 45:
        return "just now"
    mins = secs // 60
    if mins < 60:
        return f"{max(mins, 1)} min ago"
    return it.dt.strftime('%H:%M %d.%m.%Y')


# ---------- Picker ----------

class PickerDialog(QtWidgets.QDialog):
    """History list: newest first, with search, per-entry delete and paste-on-select toggle."""

    chosen = QtCore.Signal(str)
    paste_toggle_requested = QtCore.Signal()
    clear_requested = QtCore.Signal()

    def __init__(self, store: HistoryStore, settings: ClipboardSettings):
        super().__init__(None)
        self.setWindowTitle("Clipboard history")
        self.setWindowFlag(QtCore.Qt.WindowStaysOnTopHint, True)
        self.setWindowFlag(QtCore.Qt.WindowType.Tool, True)
        if sys.platform == "darwin":
            self.setAttribute(QtCore.Qt.WidgetAttribute.WA_MacAlwaysShowToolWindow, True)
        self.resize(640, 560)
        self.setStyleSheet(
            """
            QDialog { background: palette(window); border-radius: 14px; }
            QListWidget { background: transparent; border: none; }
            QListView { outline: 0; }
            QListView::item { margin: 0px; padding: 0px; background: transparent; }
            QListView::item:selected { background: transparent; }
            QFrame#card { background: #ffffff; border: 1px solid #e5e7eb; border-radius: 12px; }
            QFrame#card:hover { border-color: #2563eb; }
            QLineEdit { background: #ffffff; border: 1px solid #d1d5db; color: #111827; padding: 8px 12px; border-radius: 12px; }
            QPushButton { background: #ffffff; border: 1px solid #e5e7eb; color: #111827; padding: 6px 10px; border-radius: 10px; }
            QPushButton:hover { background: #f3f4f6; }
            """
        )

        self.store = store
        self.settings = settings

        self.search = QtWidgets.QLineEdit(self)
        self.search.setPlaceholderText("Search…")

        self.list = QtWidgets.QListWidget(self)
        self.list.setVerticalScrollMode(QtWidgets.QAbstractItemView.ScrollPerPixel)
        self.list.setSelectionMode(QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        self.list.setSpacing(0)
        self.list.setViewportMargins(12, 0, 12, 0)
        self.list.itemActivated.connect(self._activate_current)
        self.search.textChanged.connect(self._refill)

        self.paste_box = QtWidgets.QCheckBox("Paste on select")
        self.paste_box.setChecked(settings.paste_on_select)
        self.paste_box.clicked.connect(self._on_paste_clicked)

        btn_clear = QtWidgets.QPushButton("Clear all")
        btn_clear.clicked.connect(self._clear)

        bottom = QtWidgets.QHBoxLayout()
        bottom.addWidget(self.paste_box)
        bottom.addStretch(1)
        bottom.addWidget(btn_clear)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addWidget(self.search)
        layout.addWidget(self.list, 1)
        layout.addLayout(bottom)

        self.store.changed.connect(self._refill)
        self._refill()

    def showEvent(self, e: QtGui.QShowEvent) -> None:
        super().showEvent(e)
        self.paste_box.setChecked(self.settings.paste_on_select)
        self.search.setFocus(QtCore.Qt.FocusReason.ActiveWindowFocusReason)
        if self.list.count() > 0:
            self.list.setCurrentRow(0)

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:
        if event.key() in (QtCore.Qt.Key_Return, QtCore.Qt.Key_Enter):
            self._activate_current()
            return
        if event.key() == QtCore.Qt.Key_Escape:
            self.hide()
            return
        if event.key() in (QtCore.Qt.Key_Delete, QtCore.Qt.Key_Backspace) and not self.search.text():
            self._delete_current()
            return
        super().keyPressEvent(event)

    # ---------- Actions ----------

    def set_paste_on_select(self, enabled: bool):
        self.paste_box.setChecked(enabled)

    def _on_paste_clicked(self, checked: bool):
        if checked != self.settings.paste_on_select:
            self.paste_toggle_requested.emit()

    def _clear(self):
        if QtWidgets.QMessageBox.question(self, "Confirm", "Clear the whole history?") == QtWidgets.QMessageBox.Yes:
            self.clear_requested.emit()

    def visible_ids(self):
        return [self.list.item(i).data(ITEM_ID_ROLE) for i in range(self.list.count())]

    def _refill(self):
        current = self._current_item()
        self.list.clear()
        q = self.search.text().strip().lower()
        for it in self.store.items:
            if q and q not in it.text.lower():
                continue
            row_widget = self._make_row_widget(it)
            item = QtWidgets.QListWidgetItem()
            item.setData(ITEM_ID_ROLE, it.id)
            item.setSizeHint(row_widget.sizeHint())
            self.list.addItem(item)
            self.list.setItemWidget(item, row_widget)
        if self.list.count() > 0:
            ids = self.visible_ids()
            row = ids.index(current.id) if current is not None and current.id in ids else 0
            self.list.setCurrentRow(row)

    # ---------- Rows ----------

    def _make_row_widget(self, it: ClipItem) -> QtWidgets.QWidget:
        card = QtWidgets.QFrame()
        card.setObjectName("card")
        card.setAttribute(QtCore.Qt.WidgetAttribute.WA_Hover, True)
        card.setCursor(QtCore.Qt.CursorShape.PointingHandCursor)

        lay = QtWidgets.QVBoxLayout(card)
        lay.setContentsMargins(14, 10, 14, 10)
        lay.setSpacing(8)

        header = QtWidgets.QHBoxLayout()
        header.setContentsMargins(0, 0, 0, 0)
        header.setSpacing(8)
        time_lbl = QtWidgets.QLabel(time_chip_text(it))
        time_lbl.setFixedHeight(22)
        time_lbl.setStyleSheet(
            "QLabel{color:#374151; font-size:11px; padding:2px 8px; border:1px solid #e5e7eb; border-radius:9px; background: #f3f4f6;}"
        )
        header.addWidget(time_lbl)
        header.addStretch(1)

        btn_del = QtWidgets.QToolButton()
        btn_del.setText("✕")
        btn_del.setToolTip("Delete entry")
        btn_del.setAutoRaise(True)
        # Deferred: the refill triggered by the delete destroys this button
        btn_del.clicked.connect(lambda: QtCore.QTimer.singleShot(0, lambda: self.store.delete_id(it.id)))
        header.addWidget(btn_del)
        lay.addLayout(header)

        lbl = QtWidgets.QLabel(truncate(it.text, self.settings.display_max_length))
        lbl.setWordWrap(True)
        lbl.setTextFormat(QtCore.Qt.TextFormat.PlainText)
        lbl.setStyleSheet("QLabel{font-size:13px; color:#111827; background: transparent; border:none;}")
        lay.addWidget(lbl)

        row = QtWidgets.QWidget()
        v = QtWidgets.QVBoxLayout(row)
        # Vertical gap between cards comes from here, horizontal from viewportMargins
        v.setContentsMargins(0, 6, 0, 6)
        v.setSpacing(0)
        v.addWidget(card)
        return row

    def _current_item(self) -> Optional[ClipItem]:
        item = self.list.currentItem()
        if item is None:
            return None
        item_id = item.data(ITEM_ID_ROLE)
        return next((it for it in self.store.items if it.id == item_id), None)

    def _delete_current(self):
        chosen = self._current_item()
        if chosen is not None:
            self.store.delete_id(chosen.id)

    def _activate_current(self, *_):
        chosen = self._current_item()
        if chosen is None:
            return
        self.hide()
        self.chosen.emit(chosen.text)

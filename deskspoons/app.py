import logging
import sys
from typing import Optional

from PySide6 import QtCore, QtGui, QtWidgets

from .config import APP_NAME, Settings
from .history import HistoryStore
from .keys import HotkeyListener
from .leanpub import LeanpubNotifier
from .net import AsyncHttp
from .notify import NotificationCenter
from .pasteboard import create_pasteboard
from .ui import PickerDialog, truncate
from .watcher import ClipboardWatcher

if sys.platform == "darwin":
    from .mac import window_join_all_spaces_and_raise

logger = logging.getLogger(__name__)

MENU_ITEMS = 15


def make_title_icon(title: str) -> QtGui.QIcon:
    size = 22
    pm = QtGui.QPixmap(size, size)
    pm.fill(QtCore.Qt.GlobalColor.transparent)
    p = QtGui.QPainter(pm)
    p.setRenderHint(QtGui.QPainter.Antialiasing)
    f = QtGui.QFont()
    f.setPointSizeF(12.0)
    p.setFont(f)
    p.setPen(QtGui.QPen(QtGui.QColor(40, 40, 40)))
    p.drawText(pm.rect(), QtCore.Qt.AlignmentFlag.AlignCenter, title)
    p.end()
    return QtGui.QIcon(pm)


class TrayApp(QtWidgets.QSystemTrayIcon):
    def __init__(self, icon: QtGui.QIcon, parent=None):
        super().__init__(icon, parent)
        self.menu = QtWidgets.QMenu()
        self.setContextMenu(self.menu)


class AppController(QtCore.QObject):
    hotkey_triggered = QtCore.Signal(str)

    def __init__(self, app: QtWidgets.QApplication, settings: Settings):
        super().__init__()
        self.app = app
        self.settings = settings
        cs = settings.clipboard

        self.pasteboard = create_pasteboard(app)
        self.store = HistoryStore(cs)
        self.clipwatch = ClipboardWatcher(self.pasteboard, self.store, cs)
        self.clipwatch.paste_on_select_changed.connect(self._on_paste_on_select_changed)
        self.clipwatch.start()

        self._picker: Optional[PickerDialog] = None

        self.notifications = NotificationCenter(self)
        self.http = AsyncHttp(self)
        self.leanpub = LeanpubNotifier(settings.leanpub, self.http, self.notifications)
        if self.leanpub.books:
            self.leanpub.start()

        self.tray: Optional[TrayApp] = None
        if cs.show_in_menubar:
            self.tray = TrayApp(make_title_icon(cs.menubar_title))
            self.tray.setToolTip(APP_NAME)
            self.tray.menu.aboutToShow.connect(self._rebuild_menu)
            self._rebuild_menu()
            self.tray.show()

        # pynput calls back on its own thread; the queued signal lands on the GUI thread
        self.hotkey_triggered.connect(self._on_hotkey_action)
        self.hotkeys = HotkeyListener(cs.hotkeys, {
            "show_clipboard": lambda: self.hotkey_triggered.emit("show_clipboard"),
            "toggle_clipboard": lambda: self.hotkey_triggered.emit("toggle_clipboard"),
        })
        if not self.hotkeys.start():
            logger.warning("No global hotkeys bound")
        logger.info(f"{APP_NAME} started with {len(self.store.items)} history entries, watching {len(self.leanpub.books)} book(s)")

    # ---------- Menubar ----------

    def _rebuild_menu(self):
        menu = self.tray.menu
        menu.clear()
        items = self.store.items[:MENU_ITEMS]
        if not items:
            menu.addAction("History is empty").setEnabled(False)
        for it in items:
            label = truncate(" ".join(it.text.split()), min(60, self.settings.clipboard.display_max_length))
            act = menu.addAction(label)
            act.triggered.connect(lambda checked=False, text=it.text: self._on_chosen(text))
        menu.addSeparator()
        act_paste = menu.addAction("Paste on select")
        act_paste.setCheckable(True)
        act_paste.setChecked(self.settings.clipboard.paste_on_select)
        act_paste.triggered.connect(self.clipwatch.toggle_paste_on_select)
        menu.addAction("Clear last item").triggered.connect(self.clipwatch.clear_last_item)
        menu.addAction("Clear all").triggered.connect(self.clipwatch.clear_all)
        menu.addSeparator()
        menu.addAction("Show history…").triggered.connect(self.show_clipboard)
        if self.leanpub.books:
            menu.addAction("Check Leanpub builds").triggered.connect(self.leanpub.display_all_book_status)
        menu.addSeparator()
        menu.addAction("Quit").triggered.connect(self._quit)

    # ---------- Picker ----------

    def _ensure_picker(self) -> PickerDialog:
        if self._picker is None:
            self._picker = PickerDialog(self.store, self.settings.clipboard)
            self._picker.chosen.connect(self._on_chosen)
            self._picker.paste_toggle_requested.connect(self.clipwatch.toggle_paste_on_select)
            self._picker.clear_requested.connect(self.clipwatch.clear_all)
            self._picker.setAttribute(QtCore.Qt.WidgetAttribute.WA_DeleteOnClose, False)
        return self._picker

    @QtCore.Slot()
    def show_clipboard(self):
        picker = self._ensure_picker()

        # Position near mouse cursor but keep within screen bounds
        pos = QtGui.QCursor.pos()
        screen = QtGui.QGuiApplication.screenAt(pos) or QtGui.QGuiApplication.primaryScreen()
        avail = screen.availableGeometry()
        geom = picker.frameGeometry()
        geom.moveCenter(pos)
        x = max(avail.left(), min(geom.left(), avail.right() - geom.width()))
        y = max(avail.top(), min(geom.top(), avail.bottom() - geom.height()))
        picker.move(x, y)

        if not picker.isVisible():
            picker.show()
        QtCore.QTimer.singleShot(1, lambda: window_join_all_spaces_and_raise(picker) if sys.platform == "darwin" else picker.raise_())

    @QtCore.Slot()
    def toggle_clipboard(self):
        if self._picker is not None and self._picker.isVisible():
            self._picker.hide()
            return
        self.show_clipboard()

    @QtCore.Slot(str)
    def _on_hotkey_action(self, action: str):
        if action == "show_clipboard":
            self.show_clipboard()
        elif action == "toggle_clipboard":
            self.toggle_clipboard()

    @QtCore.Slot(str)
    def _on_chosen(self, text: str):
        # Give focus a moment to return to the previous app before typing into it
        QtCore.QTimer.singleShot(80, lambda: self.clipwatch.select(text))

    @QtCore.Slot(bool)
    def _on_paste_on_select_changed(self, enabled: bool):
        if self._picker is not None:
            self._picker.set_paste_on_select(enabled)
        if enabled and sys.platform == "darwin":
            from .mac import request_accessibility_permission
            request_accessibility_permission()

    def _quit(self):
        self.hotkeys.stop()
        self.clipwatch.stop()
        self.leanpub.stop()
        QtWidgets.QApplication.quit()

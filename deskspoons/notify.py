import logging
import sys
from dataclasses import dataclass
from typing import List, Optional

from PySide6 import QtCore, QtGui, QtWidgets

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    title: str
    subtitle: str = ''
    informative_text: str = ''
    icon: Optional[QtGui.QImage] = None
    withdraw_after: float = 5.0  # seconds, 0 keeps it until dismissed

    @property
    def sticky(self) -> bool:
        return self.withdraw_after <= 0


class NotificationPopup(QtWidgets.QFrame):
    """Frameless card in the top-right corner. Click to dismiss."""

    dismissed = QtCore.Signal()

    WIDTH = 340

    def __init__(self, n: Notification):
        super().__init__(None)
        self.notification = n
        self.setWindowFlags(
            QtCore.Qt.WindowType.Tool
            | QtCore.Qt.WindowType.FramelessWindowHint
            | QtCore.Qt.WindowType.WindowStaysOnTopHint
        )
        self.setAttribute(QtCore.Qt.WidgetAttribute.WA_ShowWithoutActivating, True)
        self.setCursor(QtCore.Qt.CursorShape.PointingHandCursor)
        self.setFixedWidth(self.WIDTH)
        self.setStyleSheet(
            """
            QFrame { background: #ffffff; border: 1px solid #e5e7eb; border-radius: 12px; }
            QLabel { border: none; background: transparent; color: #111827; }
            """
        )

        lay = QtWidgets.QHBoxLayout(self)
        lay.setContentsMargins(14, 12, 14, 12)
        lay.setSpacing(12)

        if n.icon is not None and not n.icon.isNull():
            icon_lbl = QtWidgets.QLabel()
            pm = QtGui.QPixmap.fromImage(n.icon).scaled(
                48, 48,
                QtCore.Qt.AspectRatioMode.KeepAspectRatio,
                QtCore.Qt.TransformationMode.SmoothTransformation,
            )
            icon_lbl.setPixmap(pm)
            icon_lbl.setAlignment(QtCore.Qt.AlignmentFlag.AlignTop)
            lay.addWidget(icon_lbl)

        text = QtWidgets.QVBoxLayout()
        text.setSpacing(2)
        self.title_label = QtWidgets.QLabel(n.title)
        self.title_label.setStyleSheet("QLabel{font-size:13px; font-weight:600;}")
        text.addWidget(self.title_label)
        if n.subtitle:
            self.subtitle_label = QtWidgets.QLabel(n.subtitle)
            self.subtitle_label.setStyleSheet("QLabel{font-size:12px; color:#374151;}")
            text.addWidget(self.subtitle_label)
        if n.informative_text:
            self.body_label = QtWidgets.QLabel(n.informative_text)
            self.body_label.setWordWrap(True)
            self.body_label.setStyleSheet("QLabel{font-size:12px; color:#4b5563;}")
            text.addWidget(self.body_label)
        lay.addLayout(text, 1)

        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self.dismiss)

    @property
    def auto_dismiss_active(self) -> bool:
        return self._timer.isActive()

    def present(self):
        self.adjustSize()
        self.show()
        if not self.notification.sticky:
            self._timer.start(int(self.notification.withdraw_after * 1000))

    def mousePressEvent(self, ev: QtGui.QMouseEvent) -> None:
        if ev.button() == QtCore.Qt.MouseButton.LeftButton:
            self.dismiss()
            ev.accept()
            return
        super().mousePressEvent(ev)

    @QtCore.Slot()
    def dismiss(self):
        self._timer.stop()
        self.hide()
        self.dismissed.emit()


class NotificationCenter(QtCore.QObject):
    """Shows notifications as stacked popups."""

    MARGIN = 12

    def __init__(self, parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self.popups: List[NotificationPopup] = []

    def send(self, n: Notification) -> NotificationPopup:
        logger.debug(f"Notification: {n.title} / {n.subtitle} / {n.informative_text}")
        popup = NotificationPopup(n)
        popup.dismissed.connect(lambda: self._on_dismissed(popup))
        self.popups.append(popup)
        popup.present()
        if sys.platform == "darwin":
            try:
                from .mac import window_join_all_spaces_and_raise
                window_join_all_spaces_and_raise(popup)
            except Exception as e:
                logger.debug(f"Cannot raise notification window: {e}")
        self._restack()
        return popup

    def _on_dismissed(self, popup: NotificationPopup):
        if popup in self.popups:
            self.popups.remove(popup)
            popup.deleteLater()
        self._restack()

    def _restack(self):
        screen = QtGui.QGuiApplication.primaryScreen()
        if screen is None:
            return
        avail = screen.availableGeometry()
        y = avail.top() + self.MARGIN
        for popup in self.popups:
            popup.move(avail.right() - popup.width() - self.MARGIN, y)
            y += popup.height() + self.MARGIN // 2

"""Track Leanpub book builds and notify about their progress."""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from PySide6 import QtCore, QtGui

from .config import LeanpubSettings
from .net import OFFLINE, load_image
from .notify import Notification

logger = logging.getLogger(__name__)


class CoverState(enum.Enum):
    UNRESOLVED = "unresolved"    # not fetched yet, try on the next poll
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"  # fetch gave nothing usable, stop trying


@dataclass
class Cover:
    state: CoverState = CoverState.UNRESOLVED
    image: Optional[QtGui.QImage] = None

    @classmethod
    def unresolved(cls) -> "Cover":
        return cls()

    @classmethod
    def resolved(cls, image: QtGui.QImage) -> "Cover":
        return cls(CoverState.RESOLVED, image)

    @classmethod
    def unavailable(cls) -> "Cover":
        return cls(CoverState.UNAVAILABLE)


@dataclass
class WatchedBook:
    slug: str
    cover: Cover = field(default_factory=Cover.unresolved)
    last_message: Optional[str] = None

    @classmethod
    def from_config(cls, entry: Dict[str, Any]) -> "WatchedBook":
        """
        Build a book from a watch_books entry.

        The optional ``icon`` is a path to an image file, or ``false`` to
        never show (or fetch) a cover for this book.
        """
        icon = entry.get("icon")
        if icon is None:
            cover = Cover.unresolved()
        elif icon is False:
            cover = Cover.unavailable()
        else:
            img = QtGui.QImage(str(icon))
            if img.isNull():
                logger.warning(f"Cannot load icon {icon} for book '{entry['slug']}'")
                cover = Cover.unavailable()
            else:
                cover = Cover.resolved(img)
        return cls(slug=entry["slug"], cover=cover)


StatusCallback = Callable[[Optional[Dict[str, Any]]], None]


class LeanpubNotifier(QtCore.QObject):
    """
    Polls the Leanpub job status of every watched book and sends a
    notification whenever a book's status message changes.

    Requests are fire-and-forget: a slow reply can land after the next
    tick's reply, and whichever continuation runs last wins.
    """

    def __init__(self, settings: LeanpubSettings, http, notifier,
                 image_loader: Callable[[bytes], Optional[QtGui.QImage]] = load_image):
        super().__init__()
        self.settings = settings
        self.http = http
        self.notifier = notifier
        self._load_image = image_loader
        self.books: List[WatchedBook] = [WatchedBook.from_config(b) for b in settings.watch_books]
        self.timer: Optional[QtCore.QTimer] = None

    @property
    def is_running(self) -> bool:
        return self.timer is not None

    def start(self):
        """Start checking every check_interval seconds."""
        if self.timer is not None:
            return
        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(int(self.settings.check_interval * 1000))
        self.timer.timeout.connect(self.display_all_book_status)
        self.timer.start()
        logger.debug(f"Checking {len(self.books)} book(s) every {self.settings.check_interval}s")

    def stop(self):
        if self.timer is not None:
            self.timer.stop()
            self.timer.deleteLater()
            self.timer = None

    def _url(self, path: str) -> str:
        base = self.settings.base_url.rstrip("/")
        return f"{base}/{path}?api_key={quote(self.settings.api_key, safe='')}"

    # ---------- Status ----------

    def get_book_status(self, slug: str, callback: StatusCallback):
        """
        Asynchronously fetch the job status of a book.

        The callback gets the decoded status (an empty dict when no build
        is running) or None on error. Nothing is called when offline.
        """
        logger.debug(f"Fetching status for book '{slug}'")
        self.http.get(
            self._url(f"{quote(slug)}/job_status"),
            lambda s, b, h: self._on_book_status(slug, s, b, h, callback),
        )

    def _on_book_status(self, slug: str, status: int, body: bytes, headers: Dict[str, str],
                        callback: StatusCallback):
        if status == 200:
            logger.debug(f"Status of book '{slug}': {body!r}")
            if not body:
                logger.debug(f"Empty status body for book '{slug}'")
                callback(None)
                return
            try:
                data = json.loads(body)
            except ValueError as e:
                logger.error(f"Undecodable status for book '{slug}': {e}")
                callback(None)
                return
            callback(data if isinstance(data, dict) else {})
        elif status != OFFLINE:
            logger.error(f"Error fetching status for book '{slug}': {status} {body!r} {headers}")
            callback(None)

    def display_book_status(self, book: WatchedBook):
        """Fetch the cover if needed, then notify if the status message changed."""
        self.fetch_book_cover(book)
        self.get_book_status(book.slug, lambda status: self._on_display_status(book, status))

    def _on_display_status(self, book: WatchedBook, status: Optional[Dict[str, Any]]):
        if status is None:
            return
        step = status.get("message")
        if step and step != book.last_message:
            self.notifier.send(self.build_notification(book, status))
        book.last_message = step

    def build_notification(self, book: WatchedBook, status: Dict[str, Any]) -> Notification:
        sticky = bool(self.settings.persistent_notification.get(status.get("status")))
        return Notification(
            title=str(status.get("name") or book.slug),
            subtitle=f"Step {status.get('num', '?')} of {status.get('total', '?')}",
            informative_text=str(status.get("message", "")),
            icon=book.cover.image if book.cover.state is CoverState.RESOLVED else None,
            withdraw_after=0 if sticky else self.settings.notification_timeout,
        )

    def display_all_book_status(self):
        for book in self.books:
            self.display_book_status(book)

    # ---------- Covers ----------

    def fetch_book_cover(self, book: WatchedBook):
        if book.cover.state is not CoverState.UNRESOLVED or not self.settings.fetch_leanpub_covers:
            return
        logger.debug(f"Fetching info for book '{book.slug}'")
        self.http.get(
            self._url(f"{quote(book.slug)}.json"),
            lambda s, b, h: self._on_book_info(book, s, b),
        )

    def _on_book_info(self, book: WatchedBook, status: int, body: bytes):
        if status != 200:
            # Leave the cover unresolved so the next poll tries again
            return
        try:
            info = json.loads(body)
        except ValueError as e:
            logger.warning(f"Undecodable info for book '{book.slug}': {e}")
            book.cover = Cover.unavailable()
            return
        url = info.get("title_page_url") if isinstance(info, dict) else None
        if not url:
            logger.debug(f"No cover available from Leanpub for book '{book.slug}'")
            book.cover = Cover.unavailable()
            return
        self.http.get(url, lambda s, b, h: self._on_cover_image(book, s, b))

    def _on_cover_image(self, book: WatchedBook, status: int, body: bytes):
        if status == OFFLINE:
            return
        img = self._load_image(body) if status == 200 else None
        if img is None:
            logger.debug(f"No cover available from Leanpub for book '{book.slug}'")
            book.cover = Cover.unavailable()
        else:
            logger.debug(f"Storing cover for book '{book.slug}'")
            book.cover = Cover.resolved(img)

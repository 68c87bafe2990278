"""Tests for the Leanpub build notifier."""

import json
import logging
from unittest.mock import MagicMock

import pytest
from PySide6 import QtGui

from deskspoons.config import LeanpubSettings
from deskspoons.leanpub import Cover, CoverState, LeanpubNotifier, WatchedBook
from deskspoons.net import OFFLINE, TRANSPORT_ERROR


def status_body(message="Generating PDF", status="working", num=3, total=9, name="My Book"):
    return json.dumps({
        "message": message, "status": status, "num": num, "total": total, "name": name,
    }).encode()


@pytest.fixture
def image():
    img = QtGui.QImage(4, 4, QtGui.QImage.Format.Format_ARGB32)
    img.fill(0)
    return img


@pytest.fixture
def lp(leanpub_settings, http, notifier):
    leanpub_settings.fetch_leanpub_covers = False
    return LeanpubNotifier(leanpub_settings, http, notifier, image_loader=MagicMock(return_value=None))


class TestGetBookStatus:
    """Test status fetching and error classification."""

    def test_url_includes_slug_and_key(self, lp, http):
        lp.get_book_status("mybook", MagicMock())
        assert http.urls() == ["https://leanpub.com/mybook/job_status?api_key=secret"]

    def test_success_decodes_body(self, lp, http):
        callback = MagicMock()
        lp.get_book_status("mybook", callback)
        http.respond(0, 200, status_body())
        callback.assert_called_once()
        assert callback.call_args[0][0]["message"] == "Generating PDF"

    def test_empty_object_means_no_job(self, lp, http):
        callback = MagicMock()
        lp.get_book_status("mybook", callback)
        http.respond(0, 200, b"{}")
        callback.assert_called_once_with({})

    def test_empty_body_reported_as_absence(self, lp, http, caplog):
        """A 200 with no body carries no status, and is not an error either."""
        callback = MagicMock()
        lp.get_book_status("mybook", callback)
        with caplog.at_level(logging.DEBUG):
            http.respond(0, 200, b"")
        callback.assert_called_once_with(None)
        assert [r for r in caplog.records if r.levelno >= logging.ERROR] == []

    def test_offline_is_silent(self, lp, http, caplog):
        """Status 0 means no network: no callback and no error log."""
        callback = MagicMock()
        lp.get_book_status("mybook", callback)
        with caplog.at_level(logging.DEBUG):
            http.respond(0, OFFLINE)
        callback.assert_not_called()
        assert [r for r in caplog.records if r.levelno >= logging.ERROR] == []

    @pytest.mark.parametrize("status", [404, 500, TRANSPORT_ERROR])
    def test_error_logged_once_and_reported(self, lp, http, caplog, status):
        callback = MagicMock()
        lp.get_book_status("mybook", callback)
        with caplog.at_level(logging.DEBUG):
            http.respond(0, status, b"nope")
        callback.assert_called_once_with(None)
        assert len([r for r in caplog.records if r.levelno >= logging.ERROR]) == 1

    def test_bad_json_reported_as_absence(self, lp, http):
        callback = MagicMock()
        lp.get_book_status("mybook", callback)
        http.respond(0, 200, b"<html>")
        callback.assert_called_once_with(None)


class TestDisplayBookStatus:
    """Test notification dedup and stickiness."""

    def test_same_message_notifies_once(self, lp, http, notifier):
        book = lp.books[0]
        lp.display_book_status(book)
        http.respond(0, 200, status_body())
        lp.display_book_status(book)
        http.respond(1, 200, status_body())
        assert len(notifier.sent) == 1

    def test_changed_message_notifies_again(self, lp, http, notifier):
        book = lp.books[0]
        lp.display_book_status(book)
        http.respond(0, 200, status_body("Step one"))
        lp.display_book_status(book)
        http.respond(1, 200, status_body("Step two"))
        assert [n.informative_text for n in notifier.sent] == ["Step one", "Step two"]

    def test_notification_contents(self, lp, http, notifier):
        lp.display_book_status(lp.books[0])
        http.respond(0, 200, status_body(num=3, total=9, name="My Book"))
        n = notifier.sent[0]
        assert n.title == "My Book"
        assert n.subtitle == "Step 3 of 9"
        assert n.informative_text == "Generating PDF"
        assert n.icon is None

    def test_complete_status_is_sticky(self, lp, http, notifier):
        lp.display_book_status(lp.books[0])
        http.respond(0, 200, status_body("Done", status="complete"))
        assert notifier.sent[0].sticky

    def test_working_status_auto_dismisses(self, lp, http, notifier, leanpub_settings):
        lp.display_book_status(lp.books[0])
        http.respond(0, 200, status_body(status="working"))
        assert not notifier.sent[0].sticky
        assert notifier.sent[0].withdraw_after == leanpub_settings.notification_timeout

    def test_custom_sticky_keys(self, lp, http, notifier, leanpub_settings):
        leanpub_settings.persistent_notification = {"working": True}
        lp.display_book_status(lp.books[0])
        http.respond(0, 200, status_body(status="working"))
        assert notifier.sent[0].sticky

    def test_no_message_resets_last_message(self, lp, http, notifier):
        """A job-free status in between lets the same message notify again."""
        book = lp.books[0]
        for i, body in enumerate([status_body("Done"), b"{}", status_body("Done")]):
            lp.display_book_status(book)
            http.respond(i, 200, body)
        assert len(notifier.sent) == 2
        assert book.last_message == "Done"

    def test_error_keeps_last_message(self, lp, http, notifier):
        book = lp.books[0]
        lp.display_book_status(book)
        http.respond(0, 200, status_body("Done"))
        lp.display_book_status(book)
        http.respond(1, 500)
        assert book.last_message == "Done"

    def test_empty_body_keeps_last_message(self, lp, http, notifier):
        """An empty reply in between does not re-notify the same message."""
        book = lp.books[0]
        for i, body in enumerate([status_body("Done"), b"", status_body("Done")]):
            lp.display_book_status(book)
            http.respond(i, 200, body)
        assert len(notifier.sent) == 1
        assert book.last_message == "Done"

    def test_resolved_cover_attached(self, lp, http, notifier, image):
        book = lp.books[0]
        book.cover = Cover.resolved(image)
        lp.display_book_status(book)
        http.respond(0, 200, status_body())
        assert notifier.sent[0].icon is image

    def test_books_are_independent(self, leanpub_settings, http, notifier):
        leanpub_settings.fetch_leanpub_covers = False
        leanpub_settings.watch_books = [{"slug": "one"}, {"slug": "two"}]
        lp = LeanpubNotifier(leanpub_settings, http, notifier)
        lp.display_all_book_status()
        assert len(http.requests) == 2
        http.respond(0, 500)
        http.respond(1, 200, status_body("Two is building"))
        assert [n.informative_text for n in notifier.sent] == ["Two is building"]
        assert lp.books[0].last_message is None


class TestFetchBookCover:
    """Test the three-state cover resolution."""

    @pytest.fixture
    def covers(self, leanpub_settings, http, notifier, image):
        loader = MagicMock(return_value=image)
        return LeanpubNotifier(leanpub_settings, http, notifier, image_loader=loader), loader

    def test_resolves_cover(self, covers, http, image):
        lp, loader = covers
        book = lp.books[0]
        lp.fetch_book_cover(book)
        assert http.urls() == ["https://leanpub.com/mybook.json?api_key=secret"]
        http.respond(0, 200, json.dumps({"title_page_url": "https://img.example/cover.png"}).encode())
        assert http.urls()[1] == "https://img.example/cover.png"
        http.respond(1, 200, b"png-bytes")
        loader.assert_called_once_with(b"png-bytes")
        assert book.cover.state is CoverState.RESOLVED
        assert book.cover.image is image

    def test_missing_title_page_marks_unavailable(self, covers, http):
        lp, _ = covers
        book = lp.books[0]
        lp.fetch_book_cover(book)
        http.respond(0, 200, b"{}")
        assert book.cover.state is CoverState.UNAVAILABLE

    def test_undecodable_image_marks_unavailable(self, covers, http):
        lp, loader = covers
        loader.return_value = None
        book = lp.books[0]
        lp.fetch_book_cover(book)
        http.respond(0, 200, json.dumps({"title_page_url": "https://img.example/c.png"}).encode())
        http.respond(1, 200, b"garbage")
        assert book.cover.state is CoverState.UNAVAILABLE

    def test_unavailable_is_not_retried(self, covers, http):
        lp, _ = covers
        book = lp.books[0]
        book.cover = Cover.unavailable()
        lp.fetch_book_cover(book)
        assert http.requests == []

    def test_metadata_error_retries_later(self, covers, http):
        lp, _ = covers
        book = lp.books[0]
        lp.fetch_book_cover(book)
        http.respond(0, 404)
        assert book.cover.state is CoverState.UNRESOLVED
        lp.fetch_book_cover(book)
        assert len(http.requests) == 2

    def test_offline_image_fetch_stays_unresolved(self, covers, http):
        lp, _ = covers
        book = lp.books[0]
        lp.fetch_book_cover(book)
        http.respond(0, 200, json.dumps({"title_page_url": "https://img.example/c.png"}).encode())
        http.respond(1, OFFLINE)
        assert book.cover.state is CoverState.UNRESOLVED

    def test_disabled_globally(self, covers, http, leanpub_settings):
        lp, _ = covers
        leanpub_settings.fetch_leanpub_covers = False
        lp.fetch_book_cover(lp.books[0])
        assert http.requests == []

    def test_display_fetches_cover_then_status(self, covers, http):
        lp, _ = covers
        lp.display_book_status(lp.books[0])
        assert http.urls() == [
            "https://leanpub.com/mybook.json?api_key=secret",
            "https://leanpub.com/mybook/job_status?api_key=secret",
        ]


class TestWatchedBookConfig:
    """Test parsing of watch_books entries."""

    def test_no_icon_is_unresolved(self):
        assert WatchedBook.from_config({"slug": "b"}).cover.state is CoverState.UNRESOLVED

    def test_false_icon_is_unavailable(self):
        assert WatchedBook.from_config({"slug": "b", "icon": False}).cover.state is CoverState.UNAVAILABLE

    def test_icon_path_is_resolved(self, qapp, tmp_path, image):
        path = tmp_path / "icon.png"
        assert image.save(str(path), "PNG")
        book = WatchedBook.from_config({"slug": "b", "icon": str(path)})
        assert book.cover.state is CoverState.RESOLVED

    def test_missing_icon_file_is_unavailable(self, tmp_path):
        book = WatchedBook.from_config({"slug": "b", "icon": str(tmp_path / "nope.png")})
        assert book.cover.state is CoverState.UNAVAILABLE


class TestTimer:
    """Test start/stop of the status poll loop."""

    def test_start_stop_cycles(self, qapp, lp, leanpub_settings):
        lp.start()
        timer = lp.timer
        assert timer.isActive()
        assert timer.interval() == int(leanpub_settings.check_interval * 1000)
        lp.start()
        assert lp.timer is timer
        lp.stop()
        assert lp.timer is None
        assert not timer.isActive()
        lp.start()
        assert lp.is_running
        lp.stop()

    def test_stop_when_not_running(self, lp):
        lp.stop()
        assert not lp.is_running

    def test_custom_base_url_and_key_quoting(self, http, notifier):
        settings = LeanpubSettings(watch_books=[{"slug": "b"}], api_key="a b&c", base_url="http://localhost:8000/")
        lp = LeanpubNotifier(settings, http, notifier)
        lp.get_book_status("b", MagicMock())
        assert http.urls() == ["http://localhost:8000/b/job_status?api_key=a%20b%26c"]

"""Shared pytest fixtures for DeskSpoons tests."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from typing import List, Optional, Set

import pytest
from PySide6 import QtWidgets

from deskspoons.config import ClipboardSettings, LeanpubSettings
from deskspoons.history import HistoryStore
from deskspoons.pasteboard import PasteboardSnapshot


@pytest.fixture(scope="session")
def qapp():
    """Single offscreen QApplication for the test session."""
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


class FakePasteboard:
    """In-memory pasteboard with a change counter."""

    def __init__(self):
        self.count = 0
        self.text: Optional[str] = None
        self.types: Set[str] = set()

    def copy(self, text: Optional[str], types=("public.utf8-plain-text",)):
        self.count += 1
        self.text = text
        self.types = set(types)

    def change_count(self) -> int:
        return self.count

    def snapshot(self) -> PasteboardSnapshot:
        return PasteboardSnapshot(change_count=self.count, text=self.text, types=frozenset(self.types))

    def set_text(self, text: str):
        self.copy(text)

    def clear(self):
        self.copy(None, types=())


class FakeHttp:
    """Records GET requests; tests answer them with respond()."""

    def __init__(self):
        self.requests: List = []

    def get(self, url, callback):
        self.requests.append((url, callback))

    def urls(self) -> List[str]:
        return [url for url, _ in self.requests]

    def respond(self, index: int, status: int, body: bytes = b"", headers=None):
        _, callback = self.requests[index]
        callback(status, body, headers or {})


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, n):
        self.sent.append(n)


@pytest.fixture
def clipboard_settings():
    return ClipboardSettings()


@pytest.fixture
def store(clipboard_settings, tmp_path):
    return HistoryStore(clipboard_settings, path=tmp_path / "history.json")


@pytest.fixture
def pasteboard():
    return FakePasteboard()


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def leanpub_settings():
    return LeanpubSettings(
        watch_books=[{"slug": "mybook"}],
        api_key="secret",
    )

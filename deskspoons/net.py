import logging
from typing import Callable, Dict, Optional, Set

from PySide6 import QtCore, QtGui, QtNetwork

logger = logging.getLogger(__name__)

# Status reported when the request never reached a server
OFFLINE = 0
# Status reported for any other failure without an HTTP response
TRANSPORT_ERROR = -1

_NetworkError = QtNetwork.QNetworkReply.NetworkError
_OFFLINE_ERRORS = {
    _NetworkError.ConnectionRefusedError,
    _NetworkError.RemoteHostClosedError,
    _NetworkError.HostNotFoundError,
    _NetworkError.TimeoutError,
    _NetworkError.TemporaryNetworkFailureError,
    _NetworkError.NetworkSessionFailedError,
    _NetworkError.UnknownNetworkError,
}

ResponseCallback = Callable[[int, bytes, Dict[str, str]], None]


def status_for_reply(reply) -> int:
    """HTTP status of a finished reply, or OFFLINE / TRANSPORT_ERROR."""
    status = reply.attribute(QtNetwork.QNetworkRequest.Attribute.HttpStatusCodeAttribute)
    if status is not None:
        return int(status)
    if reply.error() in _OFFLINE_ERRORS:
        return OFFLINE
    return TRANSPORT_ERROR


class AsyncHttp(QtCore.QObject):
    """Non-blocking GET; the callback runs on the Qt thread once the reply finishes."""

    def __init__(self, parent: Optional[QtCore.QObject] = None, timeout_ms: int = 30000):
        super().__init__(parent)
        self._nam = QtNetwork.QNetworkAccessManager(self)
        self._timeout_ms = timeout_ms
        self._in_flight: Set[QtNetwork.QNetworkReply] = set()

    def get(self, url: str, callback: ResponseCallback):
        req = QtNetwork.QNetworkRequest(QtCore.QUrl(url))
        req.setTransferTimeout(self._timeout_ms)
        reply = self._nam.get(req)
        self._in_flight.add(reply)
        reply.finished.connect(lambda: self._on_finished(reply, callback))

    def _on_finished(self, reply: QtNetwork.QNetworkReply, callback: ResponseCallback):
        self._in_flight.discard(reply)
        status = status_for_reply(reply)
        body = bytes(reply.readAll().data())
        headers = {
            bytes(k.data()).decode("latin-1"): bytes(v.data()).decode("latin-1")
            for k, v in reply.rawHeaderPairs()
        }
        if status in (OFFLINE, TRANSPORT_ERROR):
            url = reply.url().adjusted(QtCore.QUrl.UrlFormattingOption.RemoveQuery).toString()
            logger.debug(f"GET {url} failed: {reply.errorString()}")
        reply.deleteLater()
        callback(status, body, headers)


def load_image(data: bytes) -> Optional[QtGui.QImage]:
    img = QtGui.QImage()
    if not data or not img.loadFromData(data) or img.isNull():
        return None
    return img

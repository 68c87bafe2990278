import logging
import sys
from typing import Callable, Dict, Iterator, List, Tuple

logger = logging.getLogger(__name__)


def utf16_chunks(text: str, limit: int) -> Iterator[Tuple[str, int]]:
    """
    Split text into pieces of at most limit UTF-16 code units.

    Yields (chunk, units) pairs. Characters outside the BMP count as two
    units and are never split.
    """
    chunk, units = [], 0
    for ch in text:
        width = len(ch.encode("utf-16-le")) // 2
        if chunk and units + width > limit:
            yield "".join(chunk), units
            chunk, units = [], 0
        chunk.append(ch)
        units += width
    if chunk:
        yield "".join(chunk), units


def type_text(text: str):
    """Emit text as synthetic keystrokes into the frontmost application."""
    if not text:
        return
    if sys.platform == "darwin":
        from .mac import type_text as mac_type_text
        mac_type_text(text)
        return
    from pynput import keyboard
    keyboard.Controller().type(text)


class HotkeyListener:
    """
    Global hotkeys through a pynput keyboard listener.

    Callbacks run on the listener thread; callers that touch Qt objects
    must hop back to the GUI thread themselves.
    """

    def __init__(self, mapping: Dict[str, str], actions: Dict[str, Callable[[], None]]):
        self.mapping = dict(mapping)
        self.actions = actions
        self._listener = None
        self._hotkeys: List[Tuple[str, object]] = []

    @property
    def is_running(self) -> bool:
        return self._listener is not None

    def start(self) -> bool:
        if self._listener is not None:
            return True
        try:
            from pynput import keyboard
        except ImportError as e:
            logger.warning(f"Global hotkeys unavailable: {e}")
            return False

        self._hotkeys = []
        for action, combo in self.mapping.items():
            callback = self.actions.get(action)
            if callback is None:
                logger.warning(f"Unknown hotkey action '{action}'")
                continue
            try:
                keys = keyboard.HotKey.parse(combo)
            except ValueError as e:
                logger.warning(f"Invalid hotkey '{combo}' for {action}: {e}")
                continue
            self._hotkeys.append((action, keyboard.HotKey(keys, callback)))
            logger.debug(f"Bound {combo} to {action}")
        if not self._hotkeys:
            return False

        self._listener = keyboard.Listener(
            on_press=self._on_key_press,
            on_release=self._on_key_release,
            suppress=False,
        )
        self._listener.start()
        return True

    def _on_key_press(self, key):
        if self._listener is None:
            return
        key = self._listener.canonical(key)
        for _, hotkey in self._hotkeys:
            hotkey.press(key)

    def _on_key_release(self, key):
        if self._listener is None:
            return
        key = self._listener.canonical(key)
        for _, hotkey in self._hotkeys:
            hotkey.release(key)

    def stop(self):
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

import sys

if sys.platform != "darwin":
    raise SystemExit("mac.py is macOS-only")

import ctypes
import ctypes.util
import logging
import subprocess

import objc
from AppKit import (
    NSApplication,
    NSApplicationActivationPolicyAccessory,
    NSPasteboard,
    NSPasteboardTypeString,
    NSPopUpMenuWindowLevel,
    NSWindowCollectionBehaviorCanJoinAllSpaces,
    NSWindowCollectionBehaviorFullScreenAuxiliary,
)
from Quartz import (
    CGEventCreateKeyboardEvent,
    CGEventKeyboardSetUnicodeString,
    CGEventPost,
    kCGHIDEventTap,
)

from .keys import utf16_chunks
from .pasteboard import PasteboardSnapshot

logger = logging.getLogger(__name__)

# CGEventKeyboardSetUnicodeString drops UTF-16 units past this count
_KEYSTROKE_UNITS = 20


class MacPasteboard:
    """General pasteboard with the native change counter and UTI type tags."""

    def __init__(self):
        self.pb = NSPasteboard.generalPasteboard()

    def change_count(self) -> int:
        return int(self.pb.changeCount())

    def snapshot(self) -> PasteboardSnapshot:
        types = self.pb.types() or []
        text = self.pb.stringForType_(NSPasteboardTypeString)
        return PasteboardSnapshot(
            change_count=self.change_count(),
            text=str(text) if text else None,
            types=frozenset(str(t) for t in types),
        )

    def set_text(self, text: str):
        self.pb.clearContents()
        self.pb.setString_forType_(text, NSPasteboardTypeString)

    def clear(self):
        self.pb.clearContents()


def type_text(text: str):
    """Post text to the frontmost app as keyboard events."""
    for chunk, units in utf16_chunks(text, _KEYSTROKE_UNITS):
        for key_down in (True, False):
            ev = CGEventCreateKeyboardEvent(None, 0, key_down)
            CGEventKeyboardSetUnicodeString(ev, units, chunk)
            CGEventPost(kCGHIDEventTap, ev)


def has_accessibility_permission() -> bool:
    try:
        app_services = ctypes.cdll.LoadLibrary(ctypes.util.find_library("ApplicationServices"))
    except OSError as e:
        logger.warning(f"Cannot query accessibility permission: {e}")
        return False
    app_services.AXIsProcessTrusted.restype = ctypes.c_bool
    return bool(app_services.AXIsProcessTrusted())


def request_accessibility_permission(open_settings: bool = True) -> bool:
    ok = has_accessibility_permission()
    if not ok and open_settings:
        logger.info("Keystroke injection needs accessibility access, opening System Settings")
        subprocess.run(
            ["open", "x-apple.systempreferences:com.apple.preference.security?Privacy_Accessibility"],
            check=False,
        )
    return ok


def set_app_accessory_policy():
    # Menubar only, no Dock icon
    NSApplication.sharedApplication().setActivationPolicy_(NSApplicationActivationPolicyAccessory)


def window_join_all_spaces_and_raise(qwidget):
    """Float a Qt window above fullscreen apps on every Space."""
    nsview = objc.objc_object(c_void_p=int(qwidget.winId()))
    nswindow = nsview.window()
    if nswindow is None:
        return
    nswindow.setCollectionBehavior_(
        NSWindowCollectionBehaviorCanJoinAllSpaces | NSWindowCollectionBehaviorFullScreenAuxiliary
    )
    nswindow.setHidesOnDeactivate_(False)
    nswindow.setLevel_(NSPopUpMenuWindowLevel)
    nswindow.orderFrontRegardless()

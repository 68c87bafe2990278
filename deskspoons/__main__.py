import argparse
import logging
import sys
from pathlib import Path

from PySide6 import QtCore, QtGui, QtWidgets

from .app import AppController
from .config import APP_DIR, APP_NAME, CONFIG_PATH, INSTANCE_LOCK_PATH, Settings
from .exceptions import ConfigurationError


def main():
    parser = argparse.ArgumentParser(description="Clipboard history and Leanpub build notifications")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help=f"Config file (default: {CONFIG_PATH})")
    parser.add_argument("--verbose", action="store_true", help="Log debug output")
    args = parser.parse_args()

    if sys.platform != "darwin":
        print(f"{APP_NAME} supports macOS only.", file=sys.stderr)
        return 1

    try:
        settings = Settings.load(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
        stream=sys.stderr,
    )

    app = QtWidgets.QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setWindowIcon(QtGui.QIcon.fromTheme("edit-paste"))
    app.setQuitOnLastWindowClosed(False)

    APP_DIR.mkdir(parents=True, exist_ok=True)
    lock = QtCore.QLockFile(str(INSTANCE_LOCK_PATH))
    lock.setStaleLockTime(5000)
    if not lock.tryLock(1):
        QtWidgets.QMessageBox.information(None, APP_NAME, f"{APP_NAME} is already running.")
        return 0

    from .mac import set_app_accessory_policy
    try:
        set_app_accessory_policy()
    except Exception as e:
        logging.getLogger(__name__).warning(f"Cannot hide Dock icon: {e}")

    controller = AppController(app, settings)
    rc = app.exec()
    del lock
    return rc


if __name__ == "__main__":
    sys.exit(main())

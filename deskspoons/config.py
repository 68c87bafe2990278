import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

APP_NAME = "DeskSpoons"
APP_DIR = Path.home() / "Library" / "Application Support" / APP_NAME
HISTORY_PATH = APP_DIR / "history.json"
CONFIG_PATH = APP_DIR / "config.json"
INSTANCE_LOCK_PATH = APP_DIR / "instance.lock"

# Pasteboard types marking content that clipboard managers should not record
# (see http://nspasteboard.org)
DEFAULT_IGNORED_IDENTIFIERS = frozenset({
    "de.petermaurer.TransientPasteboardType",
    "com.typeit4me.clipping",
    "Pasteboard generator type",
    "com.agilebits.onepassword",
    "org.nspasteboard.TransientType",
    "org.nspasteboard.ConcealedType",
    "org.nspasteboard.AutoGeneratedType",
})

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ClipboardSettings:
    """Configuration for the clipboard history."""
    frequency: float = 0.8                 # Seconds between pasteboard polls
    hist_size: int = 100                   # Max retained entries
    deduplicate: bool = True
    honor_ignoredidentifiers: bool = True
    ignored_identifiers: Set[str] = field(default_factory=lambda: set(DEFAULT_IGNORED_IDENTIFIERS))
    max_size: bool = False                 # Enforce max_entry_size
    max_entry_size: int = 4990
    show_in_menubar: bool = True
    menubar_title: str = "\U0001F4CE"
    paste_on_select: bool = False
    display_max_length: int = 200          # Truncate rows in the picker and menu
    hotkeys: Dict[str, str] = field(default_factory=lambda: {"toggle_clipboard": "<cmd>+<shift>+v"})

    def validate(self) -> None:
        if self.frequency <= 0:
            raise ConfigurationError(f"clipboard.frequency must be positive, got {self.frequency}")
        if self.hist_size < 1:
            raise ConfigurationError(f"clipboard.hist_size must be at least 1, got {self.hist_size}")
        if self.max_entry_size < 0:
            raise ConfigurationError(f"clipboard.max_entry_size must not be negative, got {self.max_entry_size}")
        if self.display_max_length < 1:
            raise ConfigurationError(
                f"clipboard.display_max_length must be at least 1, got {self.display_max_length}"
            )


@dataclass
class LeanpubSettings:
    """Configuration for the Leanpub build notifier."""
    watch_books: List[Dict[str, Any]] = field(default_factory=list)
    api_key: str = ""
    check_interval: float = 5
    fetch_leanpub_covers: bool = True
    persistent_notification: Dict[str, bool] = field(default_factory=lambda: {"complete": True})
    notification_timeout: float = 5.0      # Seconds before non-sticky notifications close
    base_url: str = "https://leanpub.com"

    def validate(self) -> None:
        if self.check_interval <= 0:
            raise ConfigurationError(f"leanpub.check_interval must be positive, got {self.check_interval}")
        if self.notification_timeout <= 0:
            raise ConfigurationError(
                f"leanpub.notification_timeout must be positive, got {self.notification_timeout}"
            )
        for book in self.watch_books:
            if not isinstance(book, dict) or not isinstance(book.get("slug"), str) or not book["slug"]:
                raise ConfigurationError(f"Every entry of leanpub.watch_books needs a 'slug': {book!r}")


# Config file keys that differ from the dataclass field names
_ALIASES = {
    "ignoredIdentifiers": "ignored_identifiers",
}


def _build(cls, section: str, data: Any):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section '{section}' must be an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        name = _ALIASES.get(key, key)
        if name not in known:
            logger.warning(f"Ignoring unknown config key '{section}.{key}'")
            continue
        kwargs[name] = value
    if "ignored_identifiers" in kwargs:
        kwargs["ignored_identifiers"] = set(kwargs["ignored_identifiers"])
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid '{section}' section: {e}") from e


@dataclass
class Settings:
    """Shared configuration handed to both trackers."""
    clipboard: ClipboardSettings = field(default_factory=ClipboardSettings)
    leanpub: LeanpubSettings = field(default_factory=LeanpubSettings)
    log_level: str = "WARNING"

    def validate(self) -> None:
        self.clipboard.validate()
        self.leanpub.validate()
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log_level '{self.log_level}'")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be an object")
        for key in data:
            if key not in ("clipboard", "leanpub", "log_level"):
                logger.warning(f"Ignoring unknown config key '{key}'")
        settings = cls(
            clipboard=_build(ClipboardSettings, "clipboard", data.get("clipboard")),
            leanpub=_build(LeanpubSettings, "leanpub", data.get("leanpub")),
            log_level=str(data.get("log_level", "WARNING")),
        )
        try:
            settings.validate()
        except TypeError as e:
            raise ConfigurationError(f"Invalid value type in configuration: {e}") from e
        return settings

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a JSON file.

        Args:
            path: Config file, CONFIG_PATH when omitted

        Returns:
            Settings with defaults for everything the file leaves out

        Raises:
            ConfigurationError: If the file is unreadable or holds invalid values
        """
        path = Path(path) if path is not None else CONFIG_PATH
        if not path.exists():
            logger.info(f"No config file at {path}, using defaults")
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        return cls.from_dict(data)

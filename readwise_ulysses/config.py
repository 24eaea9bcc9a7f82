import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Config directory: respects XDG_CONFIG_HOME, overridable with READWISE_ULYSSES_CONFIG_DIR
CONFIG_DIR = Path(
    os.environ.get("READWISE_ULYSSES_CONFIG_DIR", "")
    or (
        Path(os.environ.get("XDG_CONFIG_HOME", "") or Path.home() / ".config")
        / "readwise-ulysses"
    )
)

# .env file: prefer config dir, then CWD (for dev checkouts)
ENV_PATH = CONFIG_DIR / ".env"
if not ENV_PATH.exists() and (Path.cwd() / ".env").exists():
    ENV_PATH = Path.cwd() / ".env"

load_dotenv(ENV_PATH)

GROUP_BY_CHOICES = ("title", "category", "category-title")
SHEET_MATCH_CHOICES = ("book-title", "sheet-name")


def _require(*names: str) -> str:
    """Return the first non-empty value among `names`, or exit."""
    for var in names:
        value = os.environ.get(var, "").strip()
        if value and not value.startswith("your_"):
            return value
    if not ENV_PATH.exists():
        print(f"Error: No config found. Create {ENV_PATH} with {names[0]}=...")
    else:
        print(f"Error: {names[0]} is not set. Fill it in {ENV_PATH}")
    sys.exit(1)


def _flag(var: str, default: str) -> bool:
    return os.environ.get(var, default).strip().lower() in ("true", "1", "yes")


# Configurable with defaults
ULYSSES_ROOT_GROUP: str = os.environ.get("ULYSSES_ROOT_GROUP", "Readwise").strip()
ULYSSES_GROUP_BY: str = os.environ.get("ULYSSES_GROUP_BY", "title").strip().lower()
ULYSSES_SHEET_MATCH: str = os.environ.get("ULYSSES_SHEET_MATCH", "book-title").strip().lower()
ULYSSES_CREATE_NOTES: bool = _flag("ULYSSES_CREATE_NOTES", "false")
ULYSSES_APP_NAME: str = os.environ.get("ULYSSES_APP_NAME", "readwise-ulysses").strip()

XCALL_PATH: str = os.environ.get("XCALL_PATH", "").strip()
XCALL_TIMEOUT: int = int(os.environ.get("XCALL_TIMEOUT", "120"))

READWISE_PAGE_SIZE: int = int(os.environ.get("READWISE_PAGE_SIZE", "1000"))
# Readwise rate limit: blanket wait between books
RATE_LIMIT_DELAY: float = float(os.environ.get("RATE_LIMIT_DELAY", "5"))

HTTP_TIMEOUT: int = int(os.environ.get("HTTP_TIMEOUT", "30"))
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").strip().upper()


def access_token() -> str:
    """Return the Readwise access token. Exits if it isn't configured."""
    return _require("READWISE_ACCESS_TOKEN", "ACCESS_TOKEN")


def check_settings() -> None:
    """Reject invalid settings before anything touches the network."""
    errors = []
    if ULYSSES_GROUP_BY not in GROUP_BY_CHOICES:
        errors.append(
            f"ULYSSES_GROUP_BY must be one of {', '.join(GROUP_BY_CHOICES)}"
            f" (got '{ULYSSES_GROUP_BY}')"
        )
    if ULYSSES_SHEET_MATCH not in SHEET_MATCH_CHOICES:
        errors.append(
            f"ULYSSES_SHEET_MATCH must be one of {', '.join(SHEET_MATCH_CHOICES)}"
            f" (got '{ULYSSES_SHEET_MATCH}')"
        )
    elif ULYSSES_SHEET_MATCH == "sheet-name" and ULYSSES_GROUP_BY == "category":
        errors.append(
            "ULYSSES_SHEET_MATCH=sheet-name needs one group per book;"
            " use ULYSSES_GROUP_BY=title or category-title"
        )
    if not ULYSSES_ROOT_GROUP or "/" in ULYSSES_ROOT_GROUP:
        errors.append("ULYSSES_ROOT_GROUP must be a non-empty name without '/'")
    if RATE_LIMIT_DELAY < 0:
        errors.append("RATE_LIMIT_DELAY must not be negative")
    for error in errors:
        print(f"Error: {error}")
    if errors:
        sys.exit(1)


def setup_logging() -> None:
    """Configure logging for the sync. Call once at the entry point."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

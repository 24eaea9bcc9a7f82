"""x-callback-url runner wrapping the xcall CLI.

xcall opens `<scheme>://x-callback-url/<action>?<params>`, waits for the
target app to call back, and prints the callback parameters as JSON on
stdout (success) or stderr (error, non-zero exit).
"""

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from readwise_ulysses.errors import SinkCommandError

log = logging.getLogger(__name__)

_REDACTED_PARAMS = ("access-token",)


class CallbackError(SinkCommandError):
    """The app answered a callback with an error (or xcall exited non-zero)."""

    def __init__(
        self,
        action: str,
        returncode: int,
        payload: Optional[Dict[str, Any]] = None,
        stderr: str = "",
    ):
        self.action = action
        self.returncode = returncode
        self.payload = payload or {}
        self.error_code = str(self.payload.get("errorCode", "")) or None
        self.error_message = self.payload.get("errorMessage") or stderr.strip()
        detail = self.error_message or "no error message"
        if self.error_code:
            detail = f"{detail} (error code {self.error_code})"
        super().__init__(f"{action} failed (exit {returncode}): {detail}")


def build_url(scheme: str, action: str, params: Dict[str, Any]) -> str:
    """Build an x-callback-url, percent-encoding spaces as %20."""
    query = urlencode(params, quote_via=quote)
    url = f"{scheme}://x-callback-url/{action}"
    return f"{url}?{query}" if query else url


def find_xcall(configured: str = "") -> str:
    """Locate the xcall binary.

    Order: explicit path, `xcall` on PATH, then the app bundle under ./bin.
    """
    if configured:
        return configured
    found = shutil.which("xcall")
    if found:
        return found
    bundled = Path.cwd() / "bin" / "xcall.app" / "Contents" / "MacOS" / "xcall"
    if bundled.exists():
        return str(bundled)
    raise SinkCommandError(
        "xcall not found. Install it: https://github.com/martinfinke/xcall "
        "(or set XCALL_PATH)"
    )


class XCallRunner:
    """Runs x-callback-url actions for one URL scheme, one at a time."""

    def __init__(self, scheme: str, binary: str = "", timeout: int = 120):
        self.scheme = scheme
        self.binary = binary
        self.timeout = timeout

    def call(self, action: str, params: Dict[str, Any]) -> str:
        """Run `action` and return xcall's raw stdout."""
        binary = self.binary or find_xcall()
        url = build_url(self.scheme, action, params)
        log.debug("Running: xcall -url %s", _redact(self.scheme, action, params))
        try:
            result = subprocess.run(
                [binary, "-url", url],
                capture_output=True, text=True, timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise SinkCommandError(f"xcall not found at {binary}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SinkCommandError(
                f"{action} timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise SinkCommandError(f"Could not run xcall: {exc}") from exc

        if result.returncode != 0:
            raise CallbackError(
                action, result.returncode,
                payload=_error_payload(result.stderr),
                stderr=result.stderr,
            )
        return result.stdout


def _error_payload(stderr: str) -> Optional[Dict[str, Any]]:
    """Decode the error callback parameters xcall prints, if any."""
    try:
        payload = json.loads(stderr)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _redact(scheme: str, action: str, params: Dict[str, Any]) -> str:
    safe = {
        key: ("***" if key in _REDACTED_PARAMS else value)
        for key, value in params.items()
    }
    return build_url(scheme, action, safe)

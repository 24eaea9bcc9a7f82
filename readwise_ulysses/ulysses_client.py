"""Ulysses client speaking the Ulysses x-callback-url API.

Replies are decoded in two stages: xcall's stdout is the JSON object of
callback parameters, and some of those parameters (`item`) are
themselves JSON documents encoded as strings.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from readwise_ulysses.errors import (
    AuthorizationError,
    MalformedResponseError,
    NotFoundError,
)
from readwise_ulysses.xcall import CallbackError, XCallRunner

log = logging.getLogger(__name__)

SCHEME = "ulysses"
APP_NAME = "readwise-ulysses"

# get-item error callbacks that mean "no such item"; anything else is fatal
_NOT_FOUND_ERROR_CODES = frozenset({"8"})
_NOT_FOUND_MESSAGES = ("not found", "could not find", "does not exist")


@dataclass(frozen=True)
class LookupResult:
    """Outcome of find_or_create_group().

    `item` is the decoded get-item payload when the group was found, or
    the new-group reply (holding `targetId`) when it was just created.
    """

    item: Dict[str, Any]
    found: bool

    @property
    def identifier(self) -> str:
        return self.item.get("identifier") or self.item.get("targetId") or ""


def decode_reply(stdout: str) -> Dict[str, Any]:
    """Stage one: decode xcall's stdout into the callback parameters."""
    text = stdout.strip()
    if not text:
        return {}
    try:
        reply = json.loads(text)
        # Some replies arrive as a JSON string wrapping the object
        if isinstance(reply, str):
            reply = json.loads(reply)
    except ValueError as exc:
        raise MalformedResponseError(f"Ulysses reply is not JSON: {text[:200]!r}") from exc
    if not isinstance(reply, dict):
        raise MalformedResponseError(
            f"Ulysses reply is {type(reply).__name__}, expected an object"
        )
    return reply


def decode_field(reply: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Stage two: decode a string-encoded JSON document inside a reply."""
    if key not in reply:
        raise MalformedResponseError(f"Ulysses reply has no '{key}' field")
    value = reply[key]
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise MalformedResponseError(
                f"Ulysses '{key}' field is not JSON: {value[:200]!r}"
            ) from exc
    if not isinstance(value, dict):
        raise MalformedResponseError(
            f"Ulysses '{key}' field is {type(value).__name__}, expected an object"
        )
    return value


class UlyssesClient:
    """An authorized connection to the Ulysses app."""

    def __init__(self, token: str, runner: XCallRunner):
        self.token = token
        self.runner = runner

    @classmethod
    def authenticate(
        cls, runner: XCallRunner, appname: str = APP_NAME,
    ) -> "UlyssesClient":
        """Ask Ulysses for an access token (the user confirms in the app)."""
        try:
            stdout = runner.call("authorize", {"appname": appname})
        except CallbackError as exc:
            raise AuthorizationError(f"Ulysses authorization failed: {exc}") from exc
        token = decode_reply(stdout).get("access-token")
        if not token:
            raise AuthorizationError("Ulysses did not return an access token")
        log.debug("Authorized with Ulysses as '%s'", appname)
        return cls(token, runner)

    def get_item(self, locator: str, recursive: bool = True) -> Dict[str, Any]:
        """Look up a group or sheet by path or identifier.

        Raises NotFoundError when Ulysses reports the item as missing.
        Other error callbacks (bad token, library not ready) propagate.
        """
        try:
            reply = self._exec("get-item", {
                "id": locator,
                "recursive": "YES" if recursive else "NO",
            })
        except CallbackError as exc:
            if not _is_not_found(exc):
                raise
            raise NotFoundError(locator, exc) from exc
        return decode_field(reply, "item")

    def create_group(self, name: str, parent: Optional[str] = None) -> Dict[str, Any]:
        """Create a group; returns the reply holding the new `targetId`."""
        params = {"name": name}
        if parent:
            params["parent"] = parent
        return self._exec("new-group", params)

    def create_sheet(
        self, text: str, group: str, fmt: str = "markdown",
    ) -> Dict[str, Any]:
        """Create a sheet in `group`; returns the reply holding `targetId`."""
        return self._exec("new-sheet", {"text": text, "group": group, "format": fmt})

    def trash(self, identifier: str) -> Dict[str, Any]:
        """Move a sheet or group to the Ulysses trash."""
        return self._exec("trash", {"id": identifier})

    def find_or_create_group(
        self,
        locator: str,
        name: str,
        parent: Optional[str] = None,
        recursive: bool = True,
    ) -> LookupResult:
        """Return the group at `locator`, creating it as `name` if absent."""
        try:
            item = self.get_item(locator, recursive=recursive)
            return LookupResult(item=item, found=True)
        except NotFoundError:
            log.info("Creating Ulysses group: %s", locator)
            return LookupResult(item=self.create_group(name, parent), found=False)

    def _exec(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        stdout = self.runner.call(action, {
            **params,
            "silent-mode": "YES",
            "access-token": self.token,
        })
        return decode_reply(stdout)


def _is_not_found(exc: CallbackError) -> bool:
    if exc.error_code is not None:
        return exc.error_code in _NOT_FOUND_ERROR_CODES
    message = (exc.error_message or "").lower()
    return any(text in message for text in _NOT_FOUND_MESSAGES)

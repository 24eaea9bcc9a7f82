"""Readwise API v2 client.

Lists books and highlights, following the `next` cursor until every page
has been read.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from readwise_ulysses.errors import (
    InvalidCredentialError,
    MalformedResponseError,
    TransportError,
)
from readwise_ulysses.models import Book, Highlight

log = logging.getLogger(__name__)

BASE_URL = "https://readwise.io/api/v2"

_MAX_RETRIES = 3
_DEFAULT_RETRY_AFTER = 60  # seconds, when a 429 carries no usable Retry-After


class ReadwiseClient:
    """An authenticated Readwise session."""

    def __init__(
        self,
        token: str,
        page_size: int = 1000,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["Authorization"] = f"Token {token}"

    @classmethod
    def authenticate(cls, token: str, **kwargs) -> "ReadwiseClient":
        """Check `token` against /auth and return a client for it.

        Readwise answers 204 for a valid token. Anything else, including a
        failure to reach the API, raises InvalidCredentialError.
        """
        client = cls(token, **kwargs)
        try:
            resp = client.session.get(f"{BASE_URL}/auth/", timeout=client.timeout)
        except requests.exceptions.RequestException as exc:
            raise InvalidCredentialError(
                f"Could not verify Readwise access token: {exc}"
            ) from exc
        if resp.status_code != 204:
            raise InvalidCredentialError(
                f"Invalid Readwise access token (HTTP {resp.status_code})"
            )
        log.debug("Readwise access token accepted")
        return client

    def list_books(self) -> List[Book]:
        """Return every book in the Readwise library, in API order."""
        results = self._list(f"{BASE_URL}/books/", {"page_size": self.page_size})
        return [_build(Book, item) for item in results]

    def list_highlights(self, book_id: Optional[int] = None) -> List[Highlight]:
        """Return highlights in API order, optionally only those of one book."""
        params: Dict[str, Any] = {"page_size": self.page_size}
        if book_id is not None:
            params["book_id"] = book_id
        results = self._list(f"{BASE_URL}/highlights/", params)
        return [_build(Highlight, item) for item in results]

    def _list(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = self._get(url, params)

        # No results field at all
        if data.get("results") is None:
            return []

        # Single page, no need to paginate
        if not data.get("next"):
            return list(data["results"])

        return self._paginate(data)

    def _paginate(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Collect results from `data` and every page after it."""
        collected: List[Dict[str, Any]] = []
        while True:
            page = data.get("results")
            if page is None:
                log.warning("Readwise page without results, discarding listing")
                return []
            collected.extend(page)

            next_url = data.get("next")
            if not next_url:
                break
            log.debug("Fetching next page: %s", next_url)
            data = self._get(next_url)
        return collected

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a Readwise endpoint and decode the JSON body.

        A 429 is waited out (Retry-After) and retried. Other failures
        raise TransportError; undecodable bodies raise MalformedResponseError.
        """
        attempt = 0
        while True:
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as exc:
                raise TransportError(f"Readwise request failed: {exc}") from exc

            if resp.status_code == 429 and attempt < _MAX_RETRIES:
                attempt += 1
                wait = _retry_after(resp)
                log.warning(
                    "Readwise rate limit hit, retrying in %ds (%d/%d)",
                    wait, attempt, _MAX_RETRIES,
                )
                time.sleep(wait)
                continue

            try:
                resp.raise_for_status()
            except requests.exceptions.HTTPError as exc:
                raise TransportError(
                    f"Readwise returned HTTP {resp.status_code} for {url}",
                    status_code=resp.status_code,
                ) from exc

            try:
                data = resp.json()
            except ValueError as exc:
                raise MalformedResponseError(
                    f"Readwise returned invalid JSON for {url}"
                ) from exc
            if not isinstance(data, dict):
                raise MalformedResponseError(
                    f"Readwise returned {type(data).__name__}, expected an object"
                )
            return data


def _retry_after(resp: requests.Response) -> int:
    value = resp.headers.get("Retry-After")
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return _DEFAULT_RETRY_AFTER


def _build(model, item: Any):
    try:
        return model.from_api(item)
    except (KeyError, TypeError, AttributeError) as exc:
        raise MalformedResponseError(
            f"Unexpected Readwise {model.__name__.lower()} payload: {item!r}"
        ) from exc

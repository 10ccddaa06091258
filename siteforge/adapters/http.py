"""
JSON-over-HTTP helper shared by the GitHub and Vercel clients.

Thin wrapper over ``urllib.request``: bearer auth, JSON bodies, a
per-request timeout, and every failure mapped to ``TransportError``.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from siteforge import __version__
from siteforge.adapters.base import TransportError

logger = logging.getLogger(__name__)

USER_AGENT = f"siteforge/{__version__}"


def _error_message(body: bytes, fallback: str) -> str:
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return fallback
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if data.get("message"):
            return str(data["message"])
    return fallback


class JsonApi:
    """Client for one JSON API base URL.

    Args:
        base_url: e.g. ``https://api.github.com``.
        token: Bearer token (omitted from requests when empty).
        timeout: Seconds per request.
        headers: Extra headers sent with every request.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            **(headers or {}),
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def url(self, path: str, params: dict[str, Any] | None = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            query = {k: v for k, v in params.items() if v is not None}
            if query:
                url += "?" + urllib.parse.urlencode(query)
        return url

    def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
        operation: str = "",
    ) -> Any:
        """Send one request and return the decoded JSON response (or None).

        Raises:
            TransportError: On HTTP errors, network errors or a non-JSON reply.
        """
        url = self.url(path, params)
        data = None
        headers = dict(self._headers)
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        op = operation or f"{method} {path}"
        logger.debug("%s %s", method, url)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            message = _error_message(e.read() or b"", e.reason or f"HTTP {e.code}")
            logger.warning("%s failed: HTTP %d %s", op, e.code, message)
            raise TransportError(message, status=e.code, operation=op) from e
        except urllib.error.URLError as e:
            logger.warning("%s failed: %s", op, e.reason)
            raise TransportError(str(e.reason), operation=op) from e
        except TimeoutError as e:
            logger.warning("%s timed out after %.0fs", op, self.timeout)
            raise TransportError(f"timed out after {self.timeout:.0f}s", operation=op) from e
        except (OSError, http.client.HTTPException) as e:
            # Dropped connections and truncated bodies (RemoteDisconnected, IncompleteRead)
            message = str(e) or type(e).__name__
            logger.warning("%s failed: %s", op, message)
            raise TransportError(message, operation=op) from e

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise TransportError(f"invalid JSON response: {e}", operation=op) from e

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, body=body, **kwargs)

    def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, body=body, **kwargs)

"""Screenpipe search client.

Screenpipe (https://screenpi.pe) records the screen and exposes the
OCR/audio index over a local REST API. This client uses urllib.request
(no new deps) and only implements the windowed search the pipeline needs.
"""

from __future__ import annotations

import contextlib
import json
import logging
import urllib.request
from datetime import datetime, timezone
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode

from daylog.config import ScreenpipeSectionConfig
from daylog.errors import TransientFetchError
from daylog.pipeline.models import RunWindow

logger = logging.getLogger(__name__)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class ScreenpipeClient:
    """Thin REST client for the Screenpipe search API."""

    def __init__(self, config: ScreenpipeSectionConfig | None = None) -> None:
        self._config = config or ScreenpipeSectionConfig()
        self._base_url = self._config.url.rstrip("/")

    def build_query(self, window: RunWindow) -> dict[str, str]:
        """Translate a RunWindow into search query parameters."""
        params = {
            "content_type": window.content_type,
            "limit": str(window.limit),
            "start_time": _iso(window.start_time),
            "end_time": _iso(window.end_time),
        }
        if window.window_name:
            params["window_name"] = window.window_name
        return params

    def query(self, window: RunWindow) -> dict[str, object]:
        """Search recorded activity inside ``window``.

        GET /search

        Returns:
            Response dict with a ``data`` list of activity records.

        Raises:
            TransientFetchError: On HTTP, connection, or decoding errors.
        """
        url = f"{self._base_url}/search?{urlencode(self.build_query(window))}"
        req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")

        try:
            with urllib.request.urlopen(req, timeout=self._config.timeout) as resp:
                payload = resp.read().decode("utf-8")
        except HTTPError as exc:
            body = ""
            with contextlib.suppress(Exception):
                body = exc.read().decode("utf-8")
            raise TransientFetchError(
                f"Screenpipe search error: {exc.code} {exc.reason} {body}".rstrip()
            ) from exc
        except (URLError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise TransientFetchError(f"Screenpipe connection error: {reason}") from exc

        try:
            data = json.loads(payload) if payload else {}
        except json.JSONDecodeError as exc:
            raise TransientFetchError(f"Screenpipe returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise TransientFetchError("Screenpipe returned an unexpected payload")

        logger.debug("Screenpipe returned %d record(s)", len(data.get("data") or []))
        return data

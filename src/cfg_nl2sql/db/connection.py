"""HTTP transport for the Tinybird query and catalog API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib import error, parse, request

logger = logging.getLogger(__name__)


class TinybirdError(RuntimeError):
    """Raised when a Tinybird request cannot be completed."""


class ExecutionError(TinybirdError):
    """Raised when Tinybird answers with a non-success HTTP status."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Tinybird request failed with HTTP {status}: {body}")
        self.status = status
        self.body = body


@dataclass(frozen=True)
class TinybirdClient:
    """Stateless bearer-token client; every call opens its own request."""

    host: str
    token: str
    timeout_seconds: int = 60

    def get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET `path` and decode the JSON body."""
        url = self.host.rstrip("/") + path
        if params:
            url += "?" + parse.urlencode(params)
        req = request.Request(
            url,
            method="GET",
            headers={"Authorization": f"Bearer {self.token}"},
        )

        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            raise ExecutionError(exc.code, details) from exc
        except error.URLError as exc:
            raise TinybirdError(f"Tinybird request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise TinybirdError("Tinybird request timed out.") from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TinybirdError("Tinybird response was not valid JSON.") from exc

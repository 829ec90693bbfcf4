"""Single HTTP exchanges over a requests session."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .config_loader import DEFAULT_TIMEOUT
from .errors import TransportError

logger = logging.getLogger("xbrlus-transport")


@dataclass
class HttpResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    def header_lines(self) -> List[str]:
        return [f"{name}: {value}" for name, value in self.headers.items()]

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except (TypeError, ValueError) as exc:
            raise TransportError(
                "Response body is not valid JSON (HTTP %s)" % self.status_code,
                status_code=self.status_code,
                cause=exc,
            ) from exc


class HttpTransport:
    """Executes one request; redirects are not followed."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._timeout = timeout
        self._verify = verify
        self._session = session or requests.Session()
        if not verify:
            logger.warning("TLS certificate verification is disabled")

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        data: Any = None,
    ) -> HttpResponse:
        logger.debug("%s %s", method, url.split("?", 1)[0])
        try:
            response = self._session.request(
                method,
                url,
                headers=headers or {},
                data=data,
                timeout=self._timeout,
                verify=self._verify,
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}", cause=exc) from exc

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

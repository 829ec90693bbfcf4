"""Scripted transport and payload builders shared by the tests."""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from xbrlus_client.transport import HttpResponse

BASE_URL = "https://api.example.test"
FACT_ROUTE = "/api/v1/fact/search"


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    data: Any = None
    query: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def form(self) -> Dict[str, Any]:
        return dict(self.data or [])

    @property
    def fields(self) -> str:
        return self.query["fields"][0]


class FakeTransport:
    """Answers token requests and business requests from separate scripts.

    Scripted items may be a JSON-able payload, an ``HttpResponse`` or a
    callable receiving the ``RecordedRequest``.
    """

    def __init__(
        self,
        responses: Optional[List[Any]] = None,
        token_responses: Optional[List[Any]] = None,
        handler: Optional[Callable[[RecordedRequest], Any]] = None,
    ):
        self.responses = list(responses or [])
        self.token_responses = list(token_responses or [])
        self.handler = handler
        self.requests: List[RecordedRequest] = []
        self.closed = False

    @property
    def token_requests(self) -> List[RecordedRequest]:
        return [r for r in self.requests if r.path.endswith("/oauth2/token")]

    @property
    def api_requests(self) -> List[RecordedRequest]:
        return [r for r in self.requests if not r.path.endswith("/oauth2/token")]

    def send(self, method, url, *, headers=None, data=None):
        request = RecordedRequest(
            method=method,
            url=url,
            headers=dict(headers or {}),
            data=data,
            query=parse_qs(urlsplit(url).query, keep_blank_values=True),
        )
        self.requests.append(request)

        if request.path.endswith("/oauth2/token"):
            script = self.token_responses
        else:
            script = self.responses
        if script:
            item = script.pop(0)
        elif self.handler is not None:
            item = self.handler
        else:
            raise AssertionError(f"unexpected request: {method} {url}")

        if callable(item):
            item = item(request)
        if isinstance(item, HttpResponse):
            return item
        return HttpResponse(status_code=200, headers={"Content-Type": "application/json"}, text=json.dumps(item))

    def close(self):
        self.closed = True


def token_payload(n: int) -> Dict[str, Any]:
    return {
        "access_token": f"access-{n}",
        "refresh_token": f"refresh-{n}",
        "token_type": "bearer",
        "expires_in": 3600,
    }


def api_error(description: str, error: str = "invalid_request") -> Dict[str, Any]:
    return {"error": error, "error_description": description}


def make_page(records: List[Any], limit: int, offset: int = 0) -> Dict[str, Any]:
    return {"data": list(records), "paging": {"count": len(records), "limit": limit, "offset": offset}}



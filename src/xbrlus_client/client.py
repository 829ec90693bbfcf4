"""Client for the XBRL US API.

:class:`XBRLUSClient` turns one logical call (route + parameters) into as
many authenticated requests as needed: expired or rejected tokens are
renewed and the request retried, and paginated collections are fetched page
by page and merged into a single response, up to a record limit.

    client = XBRLUSClient(load_config())
    facts = client.call(
        "/api/v1/fact/search",
        {"fields": "fact.id,fact.value,fact.limit(100)", "report.id": 243065, "max_limit": 500},
    )

The record limit stops the retrieval between pages, so the last page may
carry the total past it. To cap a query at exactly N records use both the
``.limit(N)`` field directive and ``max_limit=N``.
"""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .auth import AuthManager
from .config_loader import ClientConfig, ConfigProvider, FileConfigProvider
from .errors import ApiError, AuthenticationError, PaginationError, ServerErrorCode, XBRLUSError
from .pagination import (
    DEFAULT_MAX_RECORDS,
    PaginationState,
    Pairs,
    RetryState,
    entity_path,
    is_paged,
    with_offset,
)
from .token_store import Credentials, MemoryTokenStore, TokenStore
from .transport import HttpTransport

logger = logging.getLogger("xbrlus-client")

METHODS = ("GET", "POST", "PUT", "DELETE")
MAX_LIMIT_PARAM = "max_limit"
GRANT_PARAM = "grant_type"

ErrorHandler = Callable[[XBRLUSError], None]
Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]], None]


def log_error(error: XBRLUSError) -> None:
    logger.error("ERROR: %s", error)


def _without_nulls(pairs: Pairs) -> Pairs:
    # null parameters are omitted from query strings and form bodies
    return [(key, value) for key, value in pairs if value is not None]


@dataclass(frozen=True)
class CallRequest:
    url: str
    query: Pairs
    params: Pairs
    method: str
    encode_json: bool
    max_records: int
    entity_path: Optional[str]


class XBRLUSClient:
    """Authenticated, pagination-aware access to the XBRL US API.

    Tokens are restored from ``token_store`` when it holds a complete pair,
    otherwise the client logs in with the configured username and password.
    Every error raised by the client is first passed to ``error_handler``
    (logging by default).

    Calls on one instance are serialized. Separate instances sharing one
    account each get a randomized platform so their refresh tokens do not
    invalidate each other.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        config_provider: Optional[ConfigProvider] = None,
        token_store: Optional[TokenStore] = None,
        transport: Optional[HttpTransport] = None,
        error_handler: Optional[ErrorHandler] = None,
        max_records: int = DEFAULT_MAX_RECORDS,
        randomize_platform: bool = True,
    ) -> None:
        self._error_handler = error_handler or log_error

        with self._reporting():
            if config is None:
                config = (config_provider or FileConfigProvider()).load(username, password)
            else:
                config = config.with_credentials(username, password)
        if randomize_platform:
            config = config.with_random_platform()

        self.config = config
        self.max_records = max_records
        self._transport = transport or HttpTransport(
            timeout=config.timeout, verify=config.verify_tls
        )
        self._auth = AuthManager(config, self._transport, token_store or MemoryTokenStore())
        self._recovery: Dict[ServerErrorCode, Callable[[], None]] = {
            ServerErrorCode.BAD_OR_EXPIRED_TOKEN: self._refresh_tokens,
            ServerErrorCode.INVALID_REFRESH_TOKEN: self._auth.invalidate_and_relogin,
        }
        self._lock = threading.RLock()

        with self._reporting():
            self._auth.initialize()

    @property
    def credentials(self) -> Credentials:
        return self._auth.credentials

    def call(
        self,
        route: str,
        params: Params = None,
        *,
        method: str = "GET",
        encode_json: bool = False,
        return_headers: bool = False,
        header_sink: Optional[Callable[[str], None]] = None,
    ) -> Any:
        """Perform a logical API call and return the parsed, merged response.

        ``params`` go in the query string for GET and in the body otherwise
        (JSON when ``encode_json``, form-encoded if not). A ``max_limit``
        entry overrides the record limit for this call and is not sent.

        With ``return_headers`` exactly one request is made: each response
        header line is passed to ``header_sink`` and the raw body text is
        returned.
        """

        with self._lock, self._reporting():
            request = self._prepare(route, params, method, encode_json)
            if return_headers:
                return self._call_raw(request, header_sink)
            return self._call_paginated(request)

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "XBRLUSClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def _reporting(self) -> Iterator[None]:
        try:
            yield
        except XBRLUSError as exc:
            self._error_handler(exc)
            raise

    def _prepare(
        self, route: str, params: Params, method: str, encode_json: bool
    ) -> CallRequest:
        if not route:
            raise ValueError("No route defined")
        method = method.upper()
        if method not in METHODS:
            raise ValueError(f"Unsupported HTTP method {method!r}")

        pairs = list(params.items()) if isinstance(params, Mapping) else list(params or [])
        max_records = self.max_records
        outbound: Pairs = []
        for key, value in pairs:
            if key == MAX_LIMIT_PARAM:
                max_records = int(value)
            else:
                outbound.append((key, value))

        if not route.startswith("http"):
            route = self.config.base_url + ("" if route.startswith("/") else "/") + route
        parts = urlsplit(route)

        return CallRequest(
            url=urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")),
            query=parse_qsl(parts.query, keep_blank_values=True),
            params=outbound,
            method=method,
            encode_json=encode_json,
            max_records=max_records,
            entity_path=entity_path(parts.path),
        )

    def _build(
        self, request: CallRequest, offset: Optional[int]
    ) -> Tuple[str, Dict[str, str], Any]:
        query = list(request.query)
        params = list(request.params)
        if offset is not None:
            if any(key == "fields" for key, _ in query):
                query = with_offset(query, request.entity_path, offset)
            else:
                params = with_offset(params, request.entity_path, offset)

        headers: Dict[str, str] = {}
        # grant requests authenticate with the client secret, never a bearer token
        if not any(key == GRANT_PARAM for key, _ in params):
            headers.update(self._auth.authorization_header())

        data: Any = None
        if request.method == "GET":
            query.extend(params)
        elif params:
            if request.encode_json:
                data = json.dumps(dict(params))
                headers["Content-Type"] = "application/json"
            else:
                data = _without_nulls(params)

        query = _without_nulls(query)
        url = request.url
        if query:
            url += "?" + urlencode(query, doseq=True)
        return url, headers, data

    def _call_raw(
        self, request: CallRequest, header_sink: Optional[Callable[[str], None]]
    ) -> str:
        url, headers, data = self._build(request, None)
        response = self._transport.send(request.method, url, headers=headers, data=data)
        if header_sink is not None:
            for line in response.header_lines():
                header_sink(line)
        return response.text.strip()

    def _call_paginated(self, request: CallRequest) -> Any:
        state = PaginationState(entity_path=request.entity_path, max_records=request.max_records)

        while True:
            page = self._fetch_page(request, state.next_offset)
            if not is_paged(page):
                if state.pages:
                    raise PaginationError(
                        "Page %d of %s has no paging metadata" % (state.pages + 1, request.url)
                    )
                return page

            more = state.absorb(page)
            logger.debug(
                "Page %d of %s: %d records so far (limit %d)",
                state.pages,
                request.url,
                state.total,
                request.max_records,
            )
            if not more:
                if state.pages > 1:
                    logger.info(
                        "Merged %d pages of %s into %d records",
                        state.pages,
                        request.url,
                        state.total,
                    )
                return state.result

    def _fetch_page(self, request: CallRequest, offset: Optional[int]) -> Any:
        retry = RetryState()
        while True:
            retry.attempt += 1
            url, headers, data = self._build(request, offset)
            payload = self._transport.send(
                request.method, url, headers=headers, data=data
            ).json()

            if not isinstance(payload, dict) or "error" not in payload:
                return payload

            description = payload.get("error_description")
            logger.warning(
                "Attempt %d/%d on %s failed: %s",
                retry.attempt,
                retry.max_attempts,
                request.url,
                description or payload.get("error"),
            )
            if retry.exhausted:
                raise ApiError(payload, retry.attempt)

            action = self._recovery.get(ServerErrorCode.classify(description))
            if action is not None:
                action()

    def _refresh_tokens(self) -> None:
        try:
            self._auth.refresh()
        except AuthenticationError as exc:
            if exc.code is not ServerErrorCode.INVALID_REFRESH_TOKEN:
                raise
            self._auth.invalidate_and_relogin()

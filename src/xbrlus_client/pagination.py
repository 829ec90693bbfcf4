"""Reassembly of paginated responses.

The API pages collections with ``{"data": [...], "paging": {"count", "limit",
"offset"}}``. A further page is requested by appending an
``<entity>.offset(N)`` directive to the ``fields`` parameter; there is no
dedicated offset parameter.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from .errors import PaginationError

DEFAULT_MAX_RECORDS = 10000
MAX_ATTEMPTS = 3
MERGED_OFFSET = -1

_VERSION_SEGMENT = re.compile(r"^v\d+$")

Pairs = List[Tuple[str, Any]]


def entity_path(route: str) -> Optional[str]:
    """Return the segment after the API version, e.g. ``fact`` for /api/v1/fact/search."""

    segments = [segment for segment in urlsplit(route).path.split("/") if segment]
    for index, segment in enumerate(segments[:-1]):
        if _VERSION_SEGMENT.match(segment):
            return segments[index + 1]
    return None


def offset_directive(entity: str, offset: int) -> str:
    return f"{entity}.offset({offset})"


def with_offset(pairs: Pairs, entity: Optional[str], offset: int) -> Pairs:
    """Copy ``pairs`` with the offset directive appended to ``fields``."""

    if not entity:
        raise PaginationError("Cannot continue pagination: no entity path in the route")
    if not any(key == "fields" for key, _ in pairs):
        raise PaginationError(
            "Cannot continue pagination: the request has no 'fields' parameter",
            {"entity": entity, "offset": offset},
        )

    directive = offset_directive(entity, offset)
    return [
        (key, f"{value},{directive}" if key == "fields" else value)
        for key, value in pairs
    ]


def _paging(page: Dict[str, Any]) -> Tuple[int, int, int]:
    paging = page["paging"]
    return (
        int(paging.get("count") or 0),
        int(paging.get("limit") or 0),
        int(paging.get("offset") or 0),
    )


def is_paged(payload: Any) -> bool:
    return isinstance(payload, dict) and isinstance(payload.get("paging"), dict)


@dataclass
class RetryState:
    attempt: int = 0
    max_attempts: int = MAX_ATTEMPTS

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass
class PaginationState:
    """Running result of one call across its pages."""

    entity_path: Optional[str]
    max_records: int = DEFAULT_MAX_RECORDS
    offset_base: int = 0
    result: Optional[Dict[str, Any]] = None
    pages: int = 0

    @property
    def total(self) -> int:
        if self.result is None:
            return 0
        return int(self.result["paging"].get("count") or 0)

    @property
    def next_offset(self) -> Optional[int]:
        """Offset for the next request, None while no page is held."""

        if self.result is None:
            return None
        return self.total + self.offset_base

    def absorb(self, page: Dict[str, Any]) -> bool:
        """Merge ``page`` and report whether another page should be fetched."""

        count, limit, offset = _paging(page)

        if self.result is None:
            self.result = copy.deepcopy(page)
            self.result.setdefault("data", [])
            self.offset_base = offset
        else:
            self.result["data"].extend(page.get("data") or [])
            paging = self.result["paging"]
            paging["count"] = self.total + count
            paging["limit"] = limit
            paging["offset"] = MERGED_OFFSET
        self.pages += 1

        return count >= limit and count > 0 and self.total < self.max_records

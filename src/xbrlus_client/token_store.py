"""Token persistence for the access/refresh pair."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("xbrlus-token-store")


@dataclass
class Credentials:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.access_token) and bool(self.refresh_token)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"access_token": self.access_token, "refresh_token": self.refresh_token}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        return cls(
            access_token=data.get("access_token") or None,
            refresh_token=data.get("refresh_token") or None,
        )


class TokenStore(ABC):
    """Get/set access for each token, optionally backed by durable storage."""

    @abstractmethod
    def get_access_token(self) -> Optional[str]: ...

    @abstractmethod
    def set_access_token(self, access_token: Optional[str]) -> None: ...

    @abstractmethod
    def get_refresh_token(self) -> Optional[str]: ...

    @abstractmethod
    def set_refresh_token(self, refresh_token: Optional[str]) -> None: ...

    def load(self) -> Credentials:
        return Credentials(self.get_access_token(), self.get_refresh_token())

    def save(self, credentials: Credentials) -> None:
        self.set_access_token(credentials.access_token)
        self.set_refresh_token(credentials.refresh_token)


class MemoryTokenStore(TokenStore):
    """Keeps tokens for the lifetime of the process only."""

    def __init__(self, credentials: Optional[Credentials] = None) -> None:
        self._credentials = replace(credentials) if credentials else Credentials()

    def get_access_token(self) -> Optional[str]:
        return self._credentials.access_token

    def set_access_token(self, access_token: Optional[str]) -> None:
        self._credentials.access_token = access_token

    def get_refresh_token(self) -> Optional[str]:
        return self._credentials.refresh_token

    def set_refresh_token(self, refresh_token: Optional[str]) -> None:
        self._credentials.refresh_token = refresh_token


class FileTokenStore(TokenStore):
    """Stores the token pair as JSON on local disk."""

    def __init__(self, token_file: str) -> None:
        self._token_file = Path(token_file).expanduser().resolve()

    @property
    def path(self) -> Path:
        return self._token_file

    def _read(self) -> Dict[str, Any]:
        if not self._token_file.exists():
            return {}
        try:
            data = json.loads(self._token_file.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read tokens from %s: %s", self._token_file, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, token_data: Dict[str, Any]) -> None:
        self._token_file.parent.mkdir(parents=True, exist_ok=True)
        self._token_file.write_text(json.dumps(token_data, indent=2))

    def _update(self, **fields: Optional[str]) -> None:
        data = self._read()
        data.update(fields)
        self._write(data)

    def get_access_token(self) -> Optional[str]:
        return self._read().get("access_token") or None

    def set_access_token(self, access_token: Optional[str]) -> None:
        self._update(access_token=access_token)

    def get_refresh_token(self) -> Optional[str]:
        return self._read().get("refresh_token") or None

    def set_refresh_token(self, refresh_token: Optional[str]) -> None:
        self._update(refresh_token=refresh_token)

    def save(self, credentials: Credentials) -> None:
        self._update(**credentials.to_dict())

"""Token store backed by Google Secret Manager.

The token pair is kept as one JSON secret so that every instance sharing the
secret sees the latest refresh token. Each save adds a version and disables
the ones before it, since those hold refresh tokens the server has revoked.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import secretmanager

from .token_store import Credentials, TokenStore

logger = logging.getLogger("xbrlus-token-store")


class SecretManagerTokenStore(TokenStore):
    """Persists the access/refresh pair as JSON in one Secret Manager secret."""

    def __init__(
        self,
        project_id: str,
        secret_name: str,
        *,
        client: Optional[Any] = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id is required to talk to Secret Manager")
        if not secret_name:
            raise ValueError("secret_name is required")
        self._project_id = project_id
        self._secret_name = secret_name
        self._client = client or secretmanager.SecretManagerServiceClient()
        self._cache: Optional[Dict[str, Any]] = None

    @property
    def secret_path(self) -> str:
        return self._client.secret_path(self._project_id, self._secret_name)

    def _payload(self) -> Dict[str, Any]:
        if self._cache is None:
            self._cache = self._fetch()
        return self._cache

    def _fetch(self) -> Dict[str, Any]:
        try:
            response = self._client.access_secret_version(
                name=f"{self.secret_path}/versions/latest"
            )
        except gcp_exceptions.NotFound:
            return {}
        raw = response.payload.data.decode("utf-8")
        try:
            data = json.loads(raw) if raw else {}
        except json.JSONDecodeError as exc:
            logger.error("Secret %s exists but is not valid JSON: %s", self._secret_name, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        payload = secretmanager.SecretPayload(data=json.dumps(data, indent=2).encode("utf-8"))
        try:
            version = self._client.add_secret_version(parent=self.secret_path, payload=payload)
        except gcp_exceptions.NotFound:
            logger.info("Creating secret %s in project %s", self._secret_name, self._project_id)
            self._client.create_secret(
                parent=f"projects/{self._project_id}",
                secret_id=self._secret_name,
                secret=secretmanager.Secret(
                    replication=secretmanager.Replication(
                        automatic=secretmanager.Replication.Automatic()
                    )
                ),
            )
            version = self._client.add_secret_version(parent=self.secret_path, payload=payload)
        self._cache = data
        self._retire_versions(current=version.name)

    def _retire_versions(self, current: str) -> None:
        try:
            enabled = self._client.list_secret_versions(
                request={"parent": self.secret_path, "filter": "state:ENABLED"}
            )
        except gcp_exceptions.GoogleAPICallError as exc:
            logger.warning("Could not list versions of %s: %s", self._secret_name, exc)
            return

        for version in enabled:
            if version.name == current:
                continue
            try:
                self._client.disable_secret_version(name=version.name)
            except gcp_exceptions.GoogleAPICallError as exc:
                logger.warning("Could not disable %s: %s", version.name, exc)

    def get_access_token(self) -> Optional[str]:
        return self._payload().get("access_token") or None

    def set_access_token(self, access_token: Optional[str]) -> None:
        self._write({**self._payload(), "access_token": access_token})

    def get_refresh_token(self) -> Optional[str]:
        return self._payload().get("refresh_token") or None

    def set_refresh_token(self, refresh_token: Optional[str]) -> None:
        self._write({**self._payload(), "refresh_token": refresh_token})

    def save(self, credentials: Credentials) -> None:
        self._write({**self._payload(), **credentials.to_dict()})
        logger.info("Tokens stored in secret %s", self._secret_name)

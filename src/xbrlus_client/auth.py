from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .config_loader import ClientConfig
from .errors import AuthenticationError, ConfigurationError, TransportError
from .token_store import Credentials, TokenStore
from .transport import HttpTransport

logger = logging.getLogger("xbrlus-auth")

TOKEN_ROUTE = "/oauth2/token"


class AuthManager:
    """Obtains and refreshes the bearer/refresh token pair for one client."""

    def __init__(
        self,
        config: ClientConfig,
        transport: HttpTransport,
        token_store: TokenStore,
    ) -> None:
        self._config = config
        self._transport = transport
        self._token_store = token_store
        self._credentials = Credentials()

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def access_token(self) -> Optional[str]:
        return self._credentials.access_token

    def initialize(self) -> None:
        """Adopt stored tokens when both exist, otherwise log in."""

        stored = self._token_store.load()
        if stored.complete:
            logger.info("Using stored tokens for platform %s", self._config.platform)
            self._credentials = stored
            return

        missing = [
            name
            for name, value in (("username", self._config.username), ("password", self._config.password))
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "No stored token and no %s to log in with" % " or ".join(missing),
                missing=missing,
            )

        self.login()

    def login(self) -> None:
        if not self._config.username or not self._config.password:
            raise ConfigurationError(
                "Unable to obtain token due to missing username and/or password.",
                missing=[k for k in ("username", "password") if not getattr(self._config, k)],
            )

        logger.info("Logging in as %s (platform %s)", self._config.username, self._config.platform)
        payload = self._request_token(
            {
                "grant_type": "password",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "username": self._config.username,
                "password": self._config.password,
                "platform": self._config.platform,
            },
            action="login",
        )
        self._store(payload)

    def refresh(self) -> None:
        """Exchange the refresh token for a new pair; no-op without one."""

        refresh_token = self._credentials.refresh_token
        if not refresh_token:
            logger.debug("No refresh token held, skipping refresh")
            return

        logger.info("Refreshing tokens for platform %s", self._config.platform)
        payload = self._request_token(
            {
                "grant_type": "refresh_token",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "refresh_token": refresh_token,
                "platform": self._config.platform,
            },
            action="token refresh",
        )
        self._store(payload)

    def invalidate_and_relogin(self) -> None:
        logger.info("Discarding rejected tokens and logging in again")
        self._credentials = Credentials()
        self._token_store.save(self._credentials)
        self.login()

    def authorization_header(self) -> Dict[str, str]:
        if not self._credentials.access_token:
            return {}
        return {"Authorization": f"Bearer {self._credentials.access_token}"}

    def _request_token(self, form: Dict[str, str], *, action: str) -> Dict[str, Any]:
        response = self._transport.send(
            "POST", self._config.base_url + TOKEN_ROUTE, data=form
        )
        payload = response.json()
        if not isinstance(payload, dict):
            raise TransportError(
                "Unexpected token endpoint response (HTTP %s)" % response.status_code,
                status_code=response.status_code,
            )

        if "error" in payload:
            description = payload.get("error_description") or payload["error"]
            logger.error("Error during %s: %s", action, description)
            raise AuthenticationError(
                f"Error during {action}: {description}",
                error=payload.get("error"),
                error_description=payload.get("error_description"),
                payload=payload,
            )

        if not payload.get("access_token") or not payload.get("refresh_token"):
            raise AuthenticationError(
                f"Token endpoint response to {action} lacks access_token or refresh_token",
                payload=payload,
            )
        return payload

    def _store(self, payload: Dict[str, Any]) -> None:
        self._credentials = Credentials(
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
        )
        self._token_store.save(self._credentials)

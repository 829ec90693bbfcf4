"""XBRL US API client with token refresh and page reassembly."""

from .auth import AuthManager
from .client import XBRLUSClient
from .config_loader import (
    ClientConfig,
    FileConfigProvider,
    MappingConfigProvider,
    load_config,
)
from .errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    PaginationError,
    ServerErrorCode,
    TransportError,
    XBRLUSError,
)
from .pagination import DEFAULT_MAX_RECORDS
from .token_store import Credentials, FileTokenStore, MemoryTokenStore, TokenStore
from .transport import HttpResponse, HttpTransport

__all__ = [
    "XBRLUSClient",
    "AuthManager",
    "ClientConfig",
    "FileConfigProvider",
    "MappingConfigProvider",
    "load_config",
    "Credentials",
    "TokenStore",
    "MemoryTokenStore",
    "FileTokenStore",
    "HttpTransport",
    "HttpResponse",
    "DEFAULT_MAX_RECORDS",
    "XBRLUSError",
    "ConfigurationError",
    "AuthenticationError",
    "ApiError",
    "TransportError",
    "PaginationError",
    "ServerErrorCode",
]

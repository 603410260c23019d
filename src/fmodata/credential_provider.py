"""Credential providers for the FileMaker OData client.

Decouples credential sourcing from the client. The built-in
EnvCredentialProvider reads environment variables / .env files (zero config
for local dev). HeaderCredentialProvider reads per-request ``x-fmodata-*``
headers for callers that receive credentials over HTTP.
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import httpx

from fmodata.auth import Credential, classify_credential
from fmodata.config import Connection, Settings
from fmodata.errors import ConfigurationError

# Header names per setting, most specific first. Each is tried with and
# without the "x-" prefix.
_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "host": ("fmodata-host",),
    "database": ("fmodata-database", "fmodata-filename"),
    "username": ("fmodata-username",),
    "password": ("fmodata-password",),
    "otto_api_key": ("fmodata-otto-api-key", "fmodata-api-key"),
    "otto_port": ("fmodata-otto-port",),
}


@runtime_checkable
class CredentialProvider(Protocol):
    """Interface for providing FM connection details and credentials.

    Implementations source credentials from wherever the consumer
    stores them: .env files, request headers, secret stores, etc.
    """

    def get_connection(self) -> Connection:
        """Return the host/database pair.

        Raises:
            ConfigurationError: If host or database is missing.
        """
        ...

    def get_credential(self) -> Credential:
        """Return the classified credential.

        Raises:
            ConfigurationError: If no usable credential is available.
        """
        ...


class EnvCredentialProvider:
    """Credential provider backed by Settings (environment variables / .env)."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()

    def get_connection(self) -> Connection:
        return self.settings.connection()

    def get_credential(self) -> Credential:
        return self.settings.credential()


class HeaderCredentialProvider:
    """Credential provider reading ``x-fmodata-*`` / ``fmodata-*`` request headers.

    Header lookup is case-insensitive (httpx.Headers). Values absent from
    the headers come from *fallback*, when one is given.
    """

    def __init__(
        self,
        headers: Mapping[str, str] | httpx.Headers,
        fallback: Settings | None = None,
    ) -> None:
        self.headers = httpx.Headers(headers)
        self.fallback = fallback

    def _lookup(self, setting: str) -> str:
        for name in _HEADER_ALIASES[setting]:
            for candidate in (f"x-{name}", name):
                value = self.headers.get(candidate)
                if value:
                    return value
        if self.fallback is not None:
            value = getattr(self.fallback, setting)
            return "" if value is None else str(value)
        return ""

    def get_connection(self) -> Connection:
        return Connection(host=self._lookup("host"), database=self._lookup("database"))

    def get_credential(self) -> Credential:
        port_text = self._lookup("otto_port")
        try:
            port = int(port_text) if port_text else None
        except ValueError as e:
            raise ConfigurationError(f"Invalid Otto port '{port_text}'") from e
        return classify_credential(
            username=self._lookup("username") or None,
            password=self._lookup("password") or None,
            api_key=self._lookup("otto_api_key") or None,
            port=port,
        )

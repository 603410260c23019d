"""Configuration management for the FileMaker OData client.

Loads settings from environment variables or .env file.
All sensitive values come from env vars, never hardcoded.

Environment variables (FMODATA_ prefix):
  FMODATA_HOST          https://fms.example.com
  FMODATA_DATABASE      Contacts
  FMODATA_USERNAME      Basic auth account
  FMODATA_PASSWORD      Basic auth password
  FMODATA_OTTO_API_KEY  KEY_... (Otto v3) or dk_... (OttoFMS); wins over username/password
  FMODATA_OTTO_PORT     Otto v3 port (default 3030)
"""

import urllib.parse
from dataclasses import dataclass

import httpx
from pydantic_settings import BaseSettings, SettingsConfigDict

from fmodata.auth import Credential, classify_credential
from fmodata.errors import ConfigurationError

ODATA_PATH = "/fmi/odata/v4"


@dataclass(frozen=True)
class Connection:
    """Where the FileMaker database lives. Immutable for a client's lifetime."""

    host: str
    database: str

    def __post_init__(self) -> None:
        host = (self.host or "").strip().rstrip("/")
        if not host:
            raise ConfigurationError("FileMaker host is required (e.g. https://fms.example.com)")
        if "://" not in host:
            host = f"https://{host}"
        try:
            parsed = httpx.URL(host)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid FileMaker host '{self.host}': {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ConfigurationError(f"Invalid FileMaker host '{self.host}'")
        database = (self.database or "").strip()
        if not database:
            raise ConfigurationError("FileMaker database name is required")
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "database", database)

    @property
    def odata_path(self) -> str:
        """Path of the database's OData root, e.g. /fmi/odata/v4/Contacts."""
        return f"{ODATA_PATH}/{urllib.parse.quote(self.database, safe='')}"


class Settings(BaseSettings):
    """FileMaker OData client settings.

    Values are loaded from environment variables.
    For local development, use a .env file.
    """

    # FileMaker Server connection
    host: str = ""
    database: str = ""
    username: str = ""
    password: str = ""

    # Otto proxy authentication
    otto_api_key: str = ""
    otto_port: int | None = None

    # HTTP configuration
    verify_ssl: bool = True
    timeout: float = 60.0

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FMODATA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def connection(self) -> Connection:
        """Build the immutable Connection.

        Raises:
            ConfigurationError: If host or database is missing or malformed.
        """
        return Connection(host=self.host, database=self.database)

    def credential(self) -> Credential:
        """Classify the configured credential.

        Raises:
            ConfigurationError: If no usable credential is configured.
        """
        return classify_credential(
            username=self.username or None,
            password=self.password or None,
            api_key=self.otto_api_key or None,
            port=self.otto_port,
        )

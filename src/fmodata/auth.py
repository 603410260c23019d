"""FileMaker OData authentication.

Supports three credential variants:
- Basic: FileMaker account username/password (``Authorization: Basic ...``)
- Otto v3 API key (``KEY_...``): Bearer token, served on port 3030 by default
- OttoFMS API key (``dk_...``): Bearer token, every path gets an ``/otto``
  segment in front of ``/fmi``

The variant is chosen once by classify_credential(). resolve() turns a
credential into the header and path rules the client applies to every request.
"""

import base64
import logging
from dataclasses import dataclass

import httpx

from fmodata.errors import AuthResolutionError, ConfigurationError

logger = logging.getLogger(__name__)

OTTO_V3_PREFIX = "KEY_"
OTTO_FMS_PREFIX = "dk_"
OTTO_V3_DEFAULT_PORT = 3030
OTTO_FMS_PATH_PREFIX = "/otto"


@dataclass(frozen=True)
class BasicAuth:
    """FileMaker account credentials."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"BasicAuth(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class OttoV3Key:
    """Otto v3 API key (``KEY_`` prefix)."""

    key: str
    port: int = OTTO_V3_DEFAULT_PORT

    def __repr__(self) -> str:
        return f"OttoV3Key(key='{OTTO_V3_PREFIX}***', port={self.port})"


@dataclass(frozen=True)
class OttoFMSKey:
    """OttoFMS API key (``dk_`` prefix)."""

    key: str

    def __repr__(self) -> str:
        return f"OttoFMSKey(key='{OTTO_FMS_PREFIX}***')"


Credential = BasicAuth | OttoV3Key | OttoFMSKey


@dataclass(frozen=True)
class AuthResolution:
    """Header and URL rules derived from a credential."""

    header: str
    base_path_prefix: str = ""
    port: int | None = None

    def rewrite_path(self, path: str) -> str:
        """Insert the base path prefix immediately before a leading /fmi/ segment."""
        if self.base_path_prefix and path.startswith("/fmi/"):
            return f"{self.base_path_prefix}{path}"
        return path

    def apply_port(self, url: httpx.URL) -> httpx.URL:
        """Return the URL with the variant's port applied, if it has one."""
        if self.port is None:
            return url
        return url.copy_with(port=self.port)


def classify_credential(
    *,
    username: str | None = None,
    password: str | None = None,
    api_key: str | None = None,
    port: int | None = None,
) -> Credential:
    """Pick the credential variant from the supplied values.

    An API key wins over username/password. The key's prefix alone decides
    the variant.

    Args:
        username: FileMaker account name (Basic auth).
        password: FileMaker account password (Basic auth).
        api_key: Otto API key, ``KEY_...`` or ``dk_...``.
        port: Otto v3 port override. Ignored for OttoFMS keys.

    Returns:
        One of BasicAuth, OttoV3Key, OttoFMSKey.

    Raises:
        AuthResolutionError: If the key has neither recognized prefix.
        ConfigurationError: If there is no key and no username/password pair.
    """
    if api_key:
        if api_key.startswith(OTTO_V3_PREFIX):
            return OttoV3Key(key=api_key, port=port or OTTO_V3_DEFAULT_PORT)
        if api_key.startswith(OTTO_FMS_PREFIX):
            if port is not None:
                logger.debug("Ignoring port %s for OttoFMS key", port)
            return OttoFMSKey(key=api_key)
        raise AuthResolutionError(
            "invalid key format: Otto API keys must start with "
            f"'{OTTO_V3_PREFIX}' (Otto v3) or '{OTTO_FMS_PREFIX}' (OttoFMS)"
        )

    if username and password:
        return BasicAuth(username=username, password=password)

    raise ConfigurationError(
        "No credentials supplied. Provide an Otto API key or a username and password."
    )


def basic_auth_header(username: str, password: str) -> str:
    """Encode a Basic Authorization header value."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def resolve(credential: Credential) -> AuthResolution:
    """Produce the Authorization header and path rules for a credential.

    Raises:
        ConfigurationError: For an object that is not a known credential variant.
    """
    if isinstance(credential, BasicAuth):
        return AuthResolution(header=basic_auth_header(credential.username, credential.password))
    if isinstance(credential, OttoV3Key):
        return AuthResolution(header=f"Bearer {credential.key}", port=credential.port)
    if isinstance(credential, OttoFMSKey):
        return AuthResolution(
            header=f"Bearer {credential.key}",
            base_path_prefix=OTTO_FMS_PATH_PREFIX,
        )
    raise ConfigurationError(f"Unsupported credential type: {type(credential).__name__}")

"""Error kinds raised by the FileMaker OData client.

Every error derives from FMODataError and also from the builtin a caller
would naturally catch (ValueError for bad input, ConnectionError for
transport failures), so existing ``except ConnectionError`` blocks keep
working.

  ConfigurationError   - bad host, database or credential (no network call made)
  AuthResolutionError  - API key with an unrecognized prefix
  NetworkError         - connect failure, timeout, other transport error
  ODataError           - non-2xx response from FM Server
  ParseError           - malformed $metadata XML, JSON body, or $count text
"""

from typing import Any


class FMODataError(Exception):
    """Base class for all fmodata errors."""


class ConfigurationError(FMODataError, ValueError):
    """Connection or credential settings are missing or malformed."""


class AuthResolutionError(ConfigurationError):
    """API key does not start with a recognized prefix (KEY_ or dk_)."""


class NetworkError(FMODataError, ConnectionError):
    """The request never produced an HTTP response."""


class ParseError(FMODataError, ValueError):
    """A response body could not be parsed."""


class ODataError(FMODataError):
    """FM Server answered with a non-2xx status.

    Attributes:
        status_code: HTTP status of the response.
        body: Raw response text, for diagnostics.
        fm_message: Message from FM's ``{"error": {"message": ...}}`` body, if any.
    """

    def __init__(self, status_code: int, body: str = "", fm_message: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.fm_message = fm_message
        detail = fm_message or body[:500] or f"Status {status_code}"
        super().__init__(f"FileMaker OData error ({status_code}): {detail}")


def extract_fm_message(payload: Any) -> str:
    """Pull FM's error message out of a decoded JSON error body."""
    if isinstance(payload, dict) and "error" in payload:
        error_obj = payload["error"]
        if isinstance(error_obj, dict) and "message" in error_obj:
            return str(error_obj["message"])
    return ""


def is_unauthorized(error: BaseException) -> bool:
    """Classify an error as an authorization failure.

    The HTTP status decides when one is available. Only errors without a
    status fall back to a case-insensitive match on the message text.
    Transport and parse failures are never unauthorized.
    """
    if isinstance(error, (NetworkError, ParseError)):
        return False
    status = getattr(error, "status_code", None)
    if status is not None:
        return bool(status == 401)
    return "unauthorized" in str(error).lower()

"""Async client for the FileMaker OData v4 API.

Every operation issues exactly one HTTP request to
``{host}{prefix}/fmi/odata/v4/{database}/...`` where the prefix is empty for
Basic and Otto v3 auth and ``/otto`` for OttoFMS keys. The path rule comes
from the credential (see fmodata.auth) and is applied to every request.

No retries: a failed call raises immediately and the caller decides what
to do. The one exception is get_tables(), which falls back to $metadata
when the service document is refused as unauthorized (OttoFMS proxies
block it while still serving $metadata).
"""

import logging
import urllib.parse
from collections.abc import Iterable, Mapping
from types import TracebackType
from typing import Any, TypedDict

import httpx

from fmodata.auth import Credential, resolve
from fmodata.config import Connection, Settings
from fmodata.credential_provider import CredentialProvider
from fmodata.ddl import FieldDefinition, fields_payload
from fmodata.errors import (
    FMODataError,
    NetworkError,
    ODataError,
    ParseError,
    extract_fm_message,
    is_unauthorized,
)
from fmodata.metadata import (
    PropertyInfo,
    Table,
    extract_fields,
    extract_properties,
    extract_scripts,
    extract_tables,
)
from fmodata.query import QueryOptions, encode_query, format_key, quote_component
from fmodata.scripts import ScriptInvocation

logger = logging.getLogger(__name__)

# $metadata can run to several MB on large solutions
METADATA_TIMEOUT = 120.0

ODataResponse = TypedDict(
    "ODataResponse",
    {"@odata.context": str, "value": list[Any], "@odata.count": int},
    total=False,
)

FieldSpec = FieldDefinition | Mapping[str, Any]

# Quotes and parentheses stay literal in key predicates; '#', '?' and '%' must not.
_KEY_SAFE = "'()-_.!~*+,;=:@"


def _segment(name: str, what: str = "table name") -> str:
    if not name:
        raise ValueError(f"A {what} is required")
    return quote_component(name)


def _record_path(table: str, key: str | int) -> str:
    if key == "" or key is None:
        raise ValueError("A record key is required")
    predicate = urllib.parse.quote(format_key(key), safe=_KEY_SAFE)
    return f"/{_segment(table)}({predicate})"


class FMODataClient:
    """Async HTTP client for FileMaker OData v4.

    Connection and credential are fixed for the client's lifetime. The
    underlying httpx.AsyncClient is created on first use and shared by all
    concurrent calls.

    Args:
        connection: Host and database.
        credential: Classified credential (see fmodata.auth.classify_credential).
        verify_ssl: Verify the server's TLS certificate.
        timeout: Default per-request timeout in seconds.
        transport: Optional httpx transport (e.g. httpx.MockTransport in tests).
    """

    def __init__(
        self,
        connection: Connection,
        credential: Credential,
        *,
        verify_ssl: bool = True,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.connection = connection
        self.credential = credential
        self.auth = resolve(credential)
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self._transport = transport
        self._root_url = self.auth.apply_port(httpx.URL(connection.host))
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "FMODataClient":
        """Build a client from Settings.

        Raises:
            ConfigurationError: If host, database or credential is invalid.
        """
        kwargs.setdefault("verify_ssl", settings.verify_ssl)
        kwargs.setdefault("timeout", settings.timeout)
        return cls(settings.connection(), settings.credential(), **kwargs)

    @classmethod
    def from_provider(cls, provider: CredentialProvider, **kwargs: Any) -> "FMODataClient":
        """Build a client from any CredentialProvider."""
        return cls(provider.get_connection(), provider.get_credential(), **kwargs)

    @property
    def base_url(self) -> str:
        """Full OData root URL, including any auth path prefix."""
        root = str(self._root_url).rstrip("/")
        return f"{root}{self.auth.rewrite_path(self.connection.odata_path)}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._root_url,
                verify=self.verify_ssl,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": self.auth.header,
                    "Accept": "application/json",
                },
            )
        return self._client

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        """Turn a non-2xx response into ODataError, logging FM's message."""
        status = response.status_code
        body = response.text
        fm_message = ""
        try:
            fm_message = extract_fm_message(response.json())
        except ValueError:
            pass

        if status == 401:
            logger.error("Authentication failed for %s (%s)", path, type(self.credential).__name__)
        elif status == 404:
            logger.error("Resource not found: %s", path)
        else:
            logger.error("FM OData error %d on %s: %s", status, path, fm_message or body[:500])
        raise ODataError(status, body=body, fm_message=fm_message)

    async def _request(
        self,
        method: str,
        suffix: str,
        *,
        query: str = "",
        json_body: Any = None,
        accept: str | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request to ``{odata root}{suffix}``.

        Raises:
            NetworkError: When FM Server is unreachable or the call times out.
            ODataError: On any non-2xx response.
        """
        path = self.auth.rewrite_path(f"{self.connection.odata_path}{suffix}")
        url = f"{path}?{query}" if query else path
        headers = {"Accept": accept} if accept else None
        request_timeout: Any = httpx.USE_CLIENT_DEFAULT if timeout is None else timeout

        client = await self._get_client()
        logger.debug("%s %s", method, url)
        try:
            response = await client.request(
                method, url, json=json_body, headers=headers, timeout=request_timeout
            )
        except httpx.TimeoutException as e:
            logger.error("Request to %s timed out: %s", path, e)
            raise NetworkError(f"Request to FileMaker Server timed out: {method} {path}") from e
        except httpx.TransportError as e:
            logger.error("Cannot connect to FM Server at %s: %s", self.connection.host, e)
            raise NetworkError(
                f"Cannot connect to FileMaker Server at {self.connection.host}. "
                "Verify the server is running and accessible."
            ) from e

        if response.is_error:
            self._raise_for_status(response, path)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Malformed JSON response: {e}") from e

    # --- Tables and metadata ---

    async def get_tables(self, *, timeout: float | None = None) -> ODataResponse:
        """List the database's tables from the OData service document.

        When the service document is refused as unauthorized, the list is
        rebuilt from $metadata instead. Any other failure propagates.

        Raises:
            ODataError: Non-401 HTTP failure, or $metadata failure during fallback.
            NetworkError: Transport failure.
            ParseError: Malformed response or metadata.
        """
        try:
            response = await self._request("GET", "", timeout=timeout)
            return self._json(response)  # type: ignore[no-any-return]
        except FMODataError as e:
            if not is_unauthorized(e):
                raise
            logger.warning("Table listing refused (%s), rebuilding from $metadata", e)

        xml_text = await self.get_metadata(timeout=timeout)
        tables: list[Table] = extract_tables(xml_text)
        return {"@odata.context": f"{self.base_url}/$metadata", "value": list(tables)}

    async def get_metadata(self, *, timeout: float | None = None) -> str:
        """Fetch the $metadata CSDL document as XML text."""
        # $metadata must request XML; FM returns CSDL JSON with Accept: application/json
        response = await self._request(
            "GET",
            "/$metadata",
            accept="application/xml",
            timeout=METADATA_TIMEOUT if timeout is None else timeout,
        )
        return response.text

    async def get_field_names(self, table: str, *, timeout: float | None = None) -> list[str]:
        """Field names of *table* from $metadata, sorted. Not cached."""
        return extract_fields(await self.get_metadata(timeout=timeout), table)

    async def get_script_names(self, *, timeout: float | None = None) -> list[str]:
        """Script names from $metadata, sorted. Not cached."""
        return extract_scripts(await self.get_metadata(timeout=timeout))

    async def get_table_schema(
        self, table: str, *, timeout: float | None = None
    ) -> list[PropertyInfo]:
        """Typed field descriptions of *table* from $metadata. Not cached."""
        return extract_properties(await self.get_metadata(timeout=timeout), table)

    # --- Records ---

    async def get_records(
        self,
        table: str,
        options: QueryOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> ODataResponse:
        """Query records with any combination of $filter/$select/$expand/$orderby/$top/$skip/$count."""
        response = await self._request(
            "GET", f"/{_segment(table)}", query=encode_query(options), timeout=timeout
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def get_record(
        self,
        table: str,
        key: str | int,
        options: QueryOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Fetch one record by primary key. Only $select and $expand apply."""
        query = encode_query(options.only("select", "expand")) if options else ""
        response = await self._request(
            "GET", _record_path(table, key), query=query, timeout=timeout
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def get_record_count(
        self,
        table: str,
        filter: str | None = None,
        *,
        timeout: float | None = None,
    ) -> int:
        """Count records, optionally filtered. FM answers $count in plain text.

        Raises:
            ParseError: If the response body is not an integer.
        """
        response = await self._request(
            "GET",
            f"/{_segment(table)}/$count",
            query=encode_query(QueryOptions(filter=filter)),
            accept="text/plain",
            timeout=timeout,
        )
        text = response.text.strip()
        try:
            return int(text)
        except ValueError as e:
            raise ParseError(f"Expected an integer count, got {text[:100]!r}") from e

    async def get_field_value(
        self,
        table: str,
        key: str | int,
        field: str,
        *,
        timeout: float | None = None,
    ) -> str | bytes:
        """Fetch a single field's raw value.

        Returns:
            Text for textual content types, bytes otherwise (container fields).
        """
        response = await self._request(
            "GET",
            f"{_record_path(table, key)}/{_segment(field, 'field name')}/$value",
            accept="*/*",
            timeout=timeout,
        )
        content_type = response.headers.get("content-type", "")
        if not content_type or content_type.startswith(("text/", "application/json")):
            return response.text
        return response.content

    async def navigate_related(
        self,
        table: str,
        key: str | int,
        navigation: str,
        options: QueryOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> ODataResponse:
        """Follow a relationship from one record. Only $filter/$select/$top/$skip apply."""
        query = encode_query(options.only("filter", "select", "top", "skip")) if options else ""
        response = await self._request(
            "GET",
            f"{_record_path(table, key)}/{_segment(navigation, 'navigation name')}",
            query=query,
            timeout=timeout,
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def create_record(
        self, table: str, data: Mapping[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Create a record. Returns the created record as FM echoes it."""
        response = await self._request(
            "POST", f"/{_segment(table)}", json_body=dict(data), timeout=timeout
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def update_record(
        self,
        table: str,
        key: str | int,
        data: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Patch the given fields of one record.

        Returns:
            Updated record, or empty dict for 204 No Content.
        """
        response = await self._request(
            "PATCH", _record_path(table, key), json_body=dict(data), timeout=timeout
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def delete_record(
        self, table: str, key: str | int, *, timeout: float | None = None
    ) -> None:
        """Delete one record by primary key."""
        await self._request("DELETE", _record_path(table, key), timeout=timeout)

    # --- Schema ---

    async def create_table(
        self, name: str, fields: Iterable[FieldSpec], *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Create a table with the given fields."""
        if not name:
            raise ValueError("A table name is required")
        body = {"TableName": name, "Fields": fields_payload(fields)}
        response = await self._request(
            "POST", "/FileMaker_Tables", json_body=body, timeout=timeout
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def add_fields(
        self, table: str, fields: Iterable[FieldSpec], *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Add fields to an existing table."""
        response = await self._request(
            "POST",
            f"/{_segment(table)}/FileMaker_Fields",
            json_body={"Fields": fields_payload(fields)},
            timeout=timeout,
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def delete_table(self, table: str, *, timeout: float | None = None) -> None:
        """Delete a table."""
        await self._request("DELETE", f"/FileMaker_Tables('{_segment(table)}')", timeout=timeout)

    async def delete_field(self, table: str, field: str, *, timeout: float | None = None) -> None:
        """Delete one field from a table."""
        await self._request(
            "DELETE",
            f"/{_segment(table)}/FileMaker_Fields('{_segment(field, 'field name')}')",
            timeout=timeout,
        )

    # --- Scripts ---

    async def run_script(
        self, invocation: ScriptInvocation, *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Run a FileMaker script.

        POSTs ``{"scriptParameterValue": param}`` to ``/Table/Script.Name``
        (or ``/Script.Name`` when no table is given).
        """
        script = _segment(invocation.script, "script name")
        if invocation.table:
            suffix = f"/{_segment(invocation.table)}/Script.{script}"
        else:
            suffix = f"/Script.{script}"
        response = await self._request(
            "POST", suffix, json_body=invocation.body(), timeout=timeout
        )
        return self._json(response)  # type: ignore[no-any-return]

    # --- Lifecycle ---

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("OData client connection closed")

    async def __aenter__(self) -> "FMODataClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

"""Async client for the FileMaker OData v4 API (Basic, Otto v3 and OttoFMS auth)."""

from fmodata.auth import (
    AuthResolution,
    BasicAuth,
    Credential,
    OttoFMSKey,
    OttoV3Key,
    classify_credential,
    resolve,
)
from fmodata.client import FMODataClient, ODataResponse
from fmodata.config import Connection, Settings
from fmodata.ddl import FieldDefinition, FieldType
from fmodata.errors import (
    AuthResolutionError,
    ConfigurationError,
    FMODataError,
    NetworkError,
    ODataError,
    ParseError,
)
from fmodata.metadata import PropertyInfo, Table
from fmodata.query import QueryOptions, encode_query, format_key
from fmodata.scripts import ScriptInvocation, extract_script_result

__all__ = [
    "AuthResolution",
    "AuthResolutionError",
    "BasicAuth",
    "ConfigurationError",
    "Connection",
    "Credential",
    "FMODataClient",
    "FMODataError",
    "FieldDefinition",
    "FieldType",
    "NetworkError",
    "ODataError",
    "ODataResponse",
    "OttoFMSKey",
    "OttoV3Key",
    "ParseError",
    "PropertyInfo",
    "QueryOptions",
    "ScriptInvocation",
    "Settings",
    "Table",
    "classify_credential",
    "encode_query",
    "extract_script_result",
    "format_key",
    "resolve",
]

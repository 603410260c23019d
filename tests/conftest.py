"""Shared test fixtures for fmodata tests.

HTTP is faked with httpx.MockTransport so tests run without a live
FileMaker connection. FakeServer records every request and replays queued
responses in order.
"""

from collections.abc import Callable

import httpx
import pytest

from fmodata.auth import BasicAuth, Credential
from fmodata.client import FMODataClient
from fmodata.config import Connection

METADATA_XML = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
<edmx:DataServices>
<Schema Namespace="Contacts" xmlns="http://docs.oasis-open.org/odata/ns/edm">
  <EntityType Name="Orders_">
    <Key><PropertyRef Name="OrderID"/></Key>
    <Property Name="OrderID" Type="Edm.Decimal" Nullable="false"/>
    <Property Name="Customer" Type="Edm.String">
      <Annotation Term="com.filemaker.odata.FMComment" String="Billing name"/>
    </Property>
    <Property Name="Total" Type="Edm.Decimal">
      <Annotation Term="com.filemaker.odata.Calculation" Bool="true"/>
    </Property>
    <Property Name="gToday" Type="Edm.Date">
      <Annotation Term="com.filemaker.odata.Global" Bool="true"/>
    </Property>
  </EntityType>
  <EntityType Name="Projects_">
    <Key><PropertyRef Name="ROWID"/></Key>
    <Property Name="Title" Type="Edm.String"/>
    <Property Name="Status" Type="Edm.String"/>
  </EntityType>
  <EntityType Name="Projects">
    <Property Name="NotAField" Type="Edm.String"/>
  </EntityType>
  <Action Name="Script.Recalc" IsBound="true">
    <Parameter Name="scriptParameterValue" Type="Edm.String"/>
  </Action>
  <Action Name="Script.Archive_Old"/>
  <Action Name="Script.Has Space"/>
  <EntityContainer Name="Contacts_Container">
    <EntitySet Name="Orders" EntityType="Contacts.Orders_"/>
    <EntitySet Name="Projects" EntityType="Contacts.Projects_"/>
    <ActionImport Name="Script.Recalc" Action="Contacts.Script.Recalc"/>
  </EntityContainer>
</Schema>
</edmx:DataServices>
</edmx:Edmx>"""


class FakeServer:
    """Records requests; answers from a queue (default: empty collection)."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []

    def queue(self, *responses: httpx.Response | Exception) -> None:
        self.responses.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json={"value": []})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_target(self) -> str:
        """Raw path plus query of the last request, as sent on the wire."""
        return self.last.url.raw_path.decode("ascii")


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def metadata_xml() -> str:
    return METADATA_XML


@pytest.fixture
def make_client(server: FakeServer) -> Callable[..., FMODataClient]:
    """Factory for clients wired to the fake server."""

    def _make(
        credential: Credential | None = None,
        host: str = "https://fms.example.com",
        database: str = "Contacts",
    ) -> FMODataClient:
        return FMODataClient(
            Connection(host=host, database=database),
            credential or BasicAuth(username="admin", password="secret"),
            transport=httpx.MockTransport(server.handler),
        )

    return _make

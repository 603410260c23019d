"""Tests for the fmodata CLI argument parsing and command dispatch."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from conftest import FakeServer
from fmodata.cli import COMMANDS, build_parser, main
from fmodata.client import FMODataClient


class TestParser:
    def test_records_options(self) -> None:
        args = build_parser().parse_args(
            ["records", "Orders", "--filter", "Status eq 'Open'", "--top", "5", "--count"]
        )
        assert args.command == "records"
        assert args.table == "Orders"
        assert args.filter == "Status eq 'Open'"
        assert args.top == 5
        assert args.count is True
        assert args.skip is None

    def test_run_script_defaults_to_database_level(self) -> None:
        args = build_parser().parse_args(["run-script", "Recalc"])
        assert args.table is None
        assert args.param is None

    def test_every_subcommand_has_handler(self) -> None:
        parser = build_parser()
        subparsers = next(a for a in parser._actions if a.dest == "command")
        assert set(subparsers.choices) == set(COMMANDS)

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    @pytest.mark.asyncio
    async def test_count_prints_number(
        self,
        server: FakeServer,
        make_client: Callable[..., FMODataClient],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        server.queue(httpx.Response(200, text="17"))
        args = build_parser().parse_args(["count", "Orders", "--filter", "Qty gt 1"])
        await COMMANDS["count"](make_client(), args)
        assert "17" in capsys.readouterr().out
        assert server.last_target == "/fmi/odata/v4/Contacts/Orders/$count?$filter=Qty%20gt%201"

    @pytest.mark.asyncio
    async def test_fields_lists_names(
        self,
        server: FakeServer,
        make_client: Callable[..., FMODataClient],
        metadata_xml: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        server.queue(httpx.Response(200, text=metadata_xml))
        args = build_parser().parse_args(["fields", "Projects"])
        await COMMANDS["fields"](make_client(), args)
        out = capsys.readouterr().out
        assert "Status" in out
        assert "Title" in out

    @pytest.mark.asyncio
    async def test_run_script_prints_result(
        self,
        server: FakeServer,
        make_client: Callable[..., FMODataClient],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        server.queue(httpx.Response(200, json={"scriptResult": {"code": 0, "resultParameter": "ok"}}))
        args = build_parser().parse_args(["run-script", "Recalc", "--table", "Orders"])
        await COMMANDS["run-script"](make_client(), args)
        assert capsys.readouterr().out.strip() == "ok"
        assert server.last_target == "/fmi/odata/v4/Contacts/Orders/Script.Recalc"


class TestMain:
    """Configuration problems end with a stderr message and exit code 1."""

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)  # no stray .env
        for name in ("HOST", "DATABASE", "USERNAME", "PASSWORD", "OTTO_API_KEY", "OTTO_PORT"):
            monkeypatch.delenv(f"FMODATA_{name}", raising=False)

    @pytest.mark.parametrize(
        ("var", "value"), [("FMODATA_TIMEOUT", "abc"), ("FMODATA_OTTO_PORT", "")]
    )
    def test_invalid_setting_exits_cleanly(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        var: str,
        value: str,
    ) -> None:
        monkeypatch.setenv(var, value)
        with pytest.raises(SystemExit) as exc_info:
            main(["tables"])
        assert exc_info.value.code == 1
        assert "Invalid FMODATA_* settings" in capsys.readouterr().err

    def test_missing_credentials_exit_cleanly(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("FMODATA_HOST", "fms.example.com")
        monkeypatch.setenv("FMODATA_DATABASE", "Contacts")
        with pytest.raises(SystemExit) as exc_info:
            main(["tables"])
        assert exc_info.value.code == 1
        assert "No credentials" in capsys.readouterr().err

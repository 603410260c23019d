"""fmodata CLI: inspect and query a FileMaker database over OData.

Usage:
    fmodata --help
    fmodata tables
    fmodata fields Orders
    fmodata records Orders --filter "Status eq 'Open'" --top 20
    fmodata run-script Recalc --table Orders --param 42

Connection settings come from FMODATA_* environment variables or .env.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fmodata.client import FMODataClient
from fmodata.config import Settings
from fmodata.errors import FMODataError
from fmodata.query import QueryOptions
from fmodata.scripts import ScriptInvocation, extract_script_result

console = Console()
err_console = Console(stderr=True)

Command = Callable[[FMODataClient, argparse.Namespace], Awaitable[None]]


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _print_names(title: str, names: list[str]) -> None:
    if not names:
        console.print(f"[dim]No {title.lower()} found.[/dim]")
        return
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)


async def _tables(client: FMODataClient, args: argparse.Namespace) -> None:
    data = await client.get_tables()
    _print_names("Tables", [t.get("name", "") for t in data.get("value", [])])


async def _metadata(client: FMODataClient, args: argparse.Namespace) -> None:
    # Raw XML: plain print so rich markup does not interpret brackets
    print(await client.get_metadata())


async def _fields(client: FMODataClient, args: argparse.Namespace) -> None:
    _print_names(f"Fields of {args.table}", await client.get_field_names(args.table))


async def _scripts(client: FMODataClient, args: argparse.Namespace) -> None:
    _print_names("Scripts", await client.get_script_names())


async def _schema(client: FMODataClient, args: argparse.Namespace) -> None:
    properties = await client.get_table_schema(args.table)
    if not properties:
        console.print(f"[dim]No table named '{args.table}' found in metadata.[/dim]")
        return
    table = Table(title=f"Table: {args.table}")
    table.add_column("Field", style="cyan")
    table.add_column("Type")
    table.add_column("Markers")
    table.add_column("Comment", style="dim")
    for prop in properties:
        markers: list[str] = []
        if prop.key:
            markers.append("PK")
        if not prop.nullable:
            markers.append("required")
        if prop.calculation:
            markers.append("calc")
        if prop.summary:
            markers.append("summary")
        if prop.global_:
            markers.append("global")
        table.add_row(prop.name, prop.type, ", ".join(markers), prop.comment)
    console.print(table)


async def _records(client: FMODataClient, args: argparse.Namespace) -> None:
    options = QueryOptions(
        filter=args.filter,
        select=args.select,
        expand=args.expand,
        orderby=args.orderby,
        top=args.top,
        skip=args.skip,
        count=args.count,
    )
    _print_json(await client.get_records(args.table, options))


async def _count(client: FMODataClient, args: argparse.Namespace) -> None:
    console.print(await client.get_record_count(args.table, args.filter))


async def _run_script(client: FMODataClient, args: argparse.Namespace) -> None:
    result = await client.run_script(ScriptInvocation(args.table, args.script, args.param))
    text = extract_script_result(result)
    if text is None:
        _print_json(result)
    else:
        print(text)


COMMANDS: dict[str, Command] = {
    "tables": _tables,
    "metadata": _metadata,
    "fields": _fields,
    "scripts": _scripts,
    "schema": _schema,
    "records": _records,
    "count": _count,
    "run-script": _run_script,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fmodata",
        description="Inspect and query a FileMaker database over OData v4.",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout (seconds)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("tables", help="List tables")
    sub.add_parser("metadata", help="Print the $metadata XML")
    sub.add_parser("scripts", help="List scripts from $metadata")
    sub.add_parser("fields", help="List a table's fields").add_argument("table")
    sub.add_parser("schema", help="Show a table's typed fields").add_argument("table")

    records = sub.add_parser("records", help="Query records")
    records.add_argument("table")
    records.add_argument("--filter", default=None)
    records.add_argument("--select", default=None, help="Comma-separated field list")
    records.add_argument("--expand", default=None)
    records.add_argument("--orderby", default=None)
    records.add_argument("--top", type=int, default=None)
    records.add_argument("--skip", type=int, default=None)
    records.add_argument("--count", action="store_true", help="Include total count")

    count = sub.add_parser("count", help="Count records")
    count.add_argument("table")
    count.add_argument("--filter", default=None)

    script = sub.add_parser("run-script", help="Run a FileMaker script")
    script.add_argument("script")
    script.add_argument("--table", default=None, help="Table the script is bound to")
    script.add_argument("--param", default=None, help="Script parameter")

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> None:
    kwargs: dict[str, Any] = {}
    if args.timeout is not None:
        kwargs["timeout"] = args.timeout
    async with FMODataClient.from_settings(settings, **kwargs) as client:
        await COMMANDS[args.command](client, args)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the fmodata CLI."""
    args = build_parser().parse_args(argv)
    try:
        settings = Settings()
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        )
        asyncio.run(run(args, settings))
    except ValidationError as e:
        err_console.print(
            f"[bold red]ERROR:[/bold red] Invalid FMODATA_* settings:\n{escape(str(e))}",
            markup=True,
            highlight=False,
        )
        sys.exit(1)
    except FMODataError as e:
        err_console.print(
            f"[bold red]ERROR:[/bold red] {escape(str(e))}", markup=True, highlight=False
        )
        sys.exit(1)


if __name__ == "__main__":
    main()

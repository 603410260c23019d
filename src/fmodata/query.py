"""OData query-string and key-predicate construction for FileMaker.

OData query reference:
  $filter   - WHERE clause (e.g., "City eq 'Boston'")
  $select   - Column list (e.g., "Name,City")
  $expand   - Related entities to inline
  $orderby  - ORDER BY (e.g., "Name asc")
  $top      - LIMIT
  $skip     - OFFSET for pagination
  $count    - Include total count in response

FM OData accepts its documented filter syntax verbatim, so $filter is only
escaped for the characters that would break the query string itself
(%, &, #). Quotes and spaces pass through; the HTTP layer turns spaces
into %20 (FM rejects '+').
"""

import re
import urllib.parse
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace

# Order matters: '%' first so the escapes produced below are not re-escaped.
_FILTER_ESCAPES = (("%", "%25"), ("&", "%26"), ("#", "%23"))

# Same unreserved set as JavaScript's encodeURIComponent
_COMPONENT_SAFE = "-_.!~*'()"

_NUMERIC_KEY_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class QueryOptions:
    """Logical OData query options. All optional and independent."""

    filter: str | None = None
    select: str | Sequence[str] | None = None
    expand: str | None = None
    orderby: str | None = None
    top: int | None = None
    skip: int | None = None
    count: bool = False

    def only(self, *names: str) -> "QueryOptions":
        """Return a copy keeping only the named options (others reset to defaults)."""
        unknown = set(names) - {f.name for f in fields(self)}
        if unknown:
            raise ValueError(f"Unknown query options: {', '.join(sorted(unknown))}")
        defaults = QueryOptions()
        dropped = {
            f.name: getattr(defaults, f.name) for f in fields(self) if f.name not in names
        }
        return replace(self, **dropped)


def escape_filter(filter_str: str) -> str:
    """Percent-encode only '%', '&' and '#' in a $filter expression."""
    for char, escaped in _FILTER_ESCAPES:
        filter_str = filter_str.replace(char, escaped)
    return filter_str


def join_select(select: str | Sequence[str]) -> str:
    """Normalize a $select list: strip all whitespace, join with commas.

    Input:  "Name, City , Zone"  or  ["Name", " City"]
    Output: "Name,City,Zone"     or  "Name,City"
    """
    names = select.split(",") if isinstance(select, str) else list(select)
    cleaned = ("".join(name.split()) for name in names)
    return ",".join(name for name in cleaned if name)


def quote_component(value: str) -> str:
    """Standard percent-encoding for a query value or path segment."""
    return urllib.parse.quote(value, safe=_COMPONENT_SAFE)


def build_params(options: QueryOptions) -> list[tuple[str, str]]:
    """Render options as ordered (name, encoded value) pairs.

    Order is fixed: $filter, $select, $expand, $orderby, $top, $skip, $count.
    """
    params: list[tuple[str, str]] = []
    if options.filter:
        params.append(("$filter", escape_filter(options.filter)))
    if options.select:
        select = join_select(options.select)
        if select:
            params.append(("$select", select))
    if options.expand:
        params.append(("$expand", quote_component(options.expand)))
    if options.orderby:
        params.append(("$orderby", quote_component(options.orderby)))
    if options.top is not None:
        params.append(("$top", str(int(options.top))))
    if options.skip is not None:
        params.append(("$skip", str(int(options.skip))))
    if options.count:
        params.append(("$count", "true"))
    return params


def encode_query(options: QueryOptions | None) -> str:
    """Serialize query options into an OData query string (no leading '?').

    Returns:
        e.g. "$filter=Name eq 'A%26B'&$top=10", or "" when nothing is set.
    """
    if options is None:
        return ""
    return "&".join(f"{name}={value}" for name, value in build_params(options))


def is_numeric_key(key: str) -> bool:
    """True if the whole key string reads as a decimal number."""
    return _NUMERIC_KEY_RE.fullmatch(key) is not None


def format_key(key: str | int) -> str:
    """Render a primary key as an OData key predicate body.

    Numeric keys are unquoted (123, 00123); everything else is single-quoted
    ('abc-uuid'). Embedded single quotes are not escaped.
    """
    if isinstance(key, bool):
        raise TypeError("Record key must be a string or int, not bool")
    if isinstance(key, int):
        return str(key)
    if not isinstance(key, str):
        raise TypeError(f"Record key must be a string or int, not {type(key).__name__}")
    if is_numeric_key(key):
        return key
    return f"'{key}'"

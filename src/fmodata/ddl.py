"""DDL (Data Definition Layer) types for FileMaker schema changes.

FM OData exposes schema mutation through two pseudo-resources:
  FileMaker_Tables          - POST {TableName, Fields[]} to create a table
  <Table>/FileMaker_Fields  - POST {Fields[]} to add fields

Both take field definitions in the same shape:
  {"Name": "Title", "Type": "VARCHAR", "Nullable": true}
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    """SQL field types accepted by FileMaker_Tables / FileMaker_Fields."""

    VARCHAR = "VARCHAR"
    NUMERIC = "NUMERIC"
    DECIMAL = "DECIMAL"
    INT = "INT"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    BLOB = "BLOB"
    VARBINARY = "VARBINARY"
    LONGVARBINARY = "LONGVARBINARY"
    BINARY_VARYING = "BINARY VARYING"
    CHARACTER_VARYING = "CHARACTER VARYING"


@dataclass(frozen=True)
class FieldDefinition:
    """One field to create."""

    name: str
    type: FieldType = FieldType.VARCHAR
    nullable: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Field name must not be empty")
        if not isinstance(self.type, FieldType):
            # Accept the wire spelling, e.g. "BINARY VARYING" or "varchar"
            object.__setattr__(self, "type", FieldType(str(self.type).upper()))

    def to_payload(self) -> dict[str, Any]:
        """Wire form used in the Fields[] array."""
        return {"Name": self.name, "Type": self.type.value, "Nullable": self.nullable}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FieldDefinition":
        """Build from a mapping with name/type/nullable keys (either case)."""
        lowered = {str(k).lower(): v for k, v in data.items()}
        return cls(
            name=str(lowered.get("name", "")),
            type=lowered.get("type", FieldType.VARCHAR),
            nullable=_parse_nullable(lowered.get("nullable", True)),
        )


_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


def _parse_nullable(value: Any) -> bool:
    """Read a Nullable flag that may arrive as text (env, CLI, form input)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"Invalid Nullable value: {value!r}")


def fields_payload(fields: Iterable[FieldDefinition | Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Serialize field definitions, accepting plain mappings as well."""
    result: list[dict[str, Any]] = []
    for field in fields:
        if not isinstance(field, FieldDefinition):
            field = FieldDefinition.from_mapping(field)
        result.append(field.to_payload())
    return result

"""Parse FileMaker OData $metadata (CSDL XML) into tables, scripts and fields.

Pure functions: no network access. Elements are matched by local name so
the edm/edmx namespaces (which differ between FM versions) do not matter.

FM naming conventions relied on here:
  - EntityType names carry a trailing underscore: table "Orders" is
    described by <EntityType Name="Orders_">.
  - Scripts are exposed as actions/function imports named "Script.<name>".
  - Field annotations use com.filemaker.odata.* terms
    (Calculation, Summary, Global, FMComment).
"""

import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypedDict

from fmodata.errors import ParseError


class Table(TypedDict):
    """One queryable collection, as listed by the OData service document."""

    name: str
    kind: str
    url: str


@dataclass(frozen=True)
class PropertyInfo:
    """A field as described by $metadata."""

    name: str
    type: str
    nullable: bool = True
    key: bool = False
    calculation: bool = False
    summary: bool = False
    global_: bool = False
    comment: str = ""


_SCRIPT_NAME_RE = re.compile(r"Script\.(\w+)")

# Annotation Term suffixes we care about (matched case-insensitively against Term attr)
_ANNOTATION_MAP = {
    "calculation": "calculation",
    "summary": "summary",
    "global": "global_",
    "fmcomment": "comment",
}


def _parse(xml_text: str) -> ET.Element:
    try:
        return ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ParseError(f"Malformed $metadata XML: {e}") from e


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _iter_local(root: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield every descendant (and root itself) whose local tag is *name*."""
    for elem in root.iter():
        if isinstance(elem.tag, str) and _local_name(elem.tag) == name:
            yield elem


def _children_local(parent: ET.Element, name: str) -> Iterator[ET.Element]:
    for elem in parent:
        if isinstance(elem.tag, str) and _local_name(elem.tag) == name:
            yield elem


def entity_type_name(table: str) -> str:
    """Name of the EntityType that describes *table* (FM appends '_')."""
    return f"{table}_"


def _find_entity_type(root: ET.Element, table: str) -> ET.Element | None:
    wanted = entity_type_name(table)
    for entity in _iter_local(root, "EntityType"):
        if entity.get("Name") == wanted:
            return entity
    return None


def extract_tables(xml_text: str) -> list[Table]:
    """List every EntitySet, in document order.

    Raises:
        ParseError: If the XML is not well-formed.
    """
    root = _parse(xml_text)
    tables: list[Table] = []
    for entity_set in _iter_local(root, "EntitySet"):
        name = entity_set.get("Name")
        if name:
            tables.append({"name": name, "kind": "EntitySet", "url": name})
    return tables


def extract_scripts(xml_text: str) -> list[str]:
    """List script names from every ``Name="Script.<name>"`` attribute.

    Returns:
        Deduplicated names, sorted alphabetically.

    Raises:
        ParseError: If the XML is not well-formed.
    """
    root = _parse(xml_text)
    scripts: set[str] = set()
    for elem in root.iter():
        match = _SCRIPT_NAME_RE.fullmatch(elem.get("Name", ""))
        if match:
            scripts.add(match.group(1))
    return sorted(scripts)


def extract_fields(xml_text: str, table: str) -> list[str]:
    """List the field names of *table*, sorted alphabetically.

    Returns an empty list when the table has no EntityType in the document.

    Raises:
        ParseError: If the XML is not well-formed.
    """
    entity = _find_entity_type(_parse(xml_text), table)
    if entity is None:
        return []
    names = (prop.get("Name", "") for prop in _iter_local(entity, "Property"))
    return sorted(name for name in names if name)


def _read_annotations(prop: ET.Element) -> dict[str, bool | str]:
    found: dict[str, bool | str] = {}
    for ann in _children_local(prop, "Annotation"):
        term = (ann.get("Term", "") or "").lower()
        for suffix, key in _ANNOTATION_MAP.items():
            if term.endswith(suffix):
                if key == "comment":
                    value = ann.get("String", "")
                    if value:
                        found[key] = value
                elif ann.get("Bool", "").lower() == "true":
                    found[key] = True
                break
    return found


def extract_properties(xml_text: str, table: str) -> list[PropertyInfo]:
    """Describe every field of *table*, in document order.

    Includes the Edm type, nullability, primary-key membership, and the FM
    annotations (calculation, summary, global, comment).

    Raises:
        ParseError: If the XML is not well-formed.
    """
    entity = _find_entity_type(_parse(xml_text), table)
    if entity is None:
        return []

    key_fields: set[str] = set()
    for key_elem in _children_local(entity, "Key"):
        for prop_ref in _children_local(key_elem, "PropertyRef"):
            key_name = prop_ref.get("Name", "")
            if key_name:
                key_fields.add(key_name)

    properties: list[PropertyInfo] = []
    for prop in _children_local(entity, "Property"):
        name = prop.get("Name", "")
        if not name:
            continue
        annotations = _read_annotations(prop)
        properties.append(
            PropertyInfo(
                name=name,
                type=prop.get("Type", ""),
                nullable=prop.get("Nullable", "true").lower() != "false",
                key=name in key_fields,
                calculation=bool(annotations.get("calculation")),
                summary=bool(annotations.get("summary")),
                global_=bool(annotations.get("global_")),
                comment=str(annotations.get("comment", "")),
            )
        )
    return properties

"""Tests for DDL field definitions and script result handling."""

import logging

import pytest

from fmodata.ddl import FieldDefinition, FieldType, fields_payload
from fmodata.scripts import ScriptInvocation, extract_script_result


class TestFieldDefinition:
    def test_default_is_nullable_varchar(self) -> None:
        assert FieldDefinition("Title").to_payload() == {
            "Name": "Title",
            "Type": "VARCHAR",
            "Nullable": True,
        }

    def test_string_type_coerced(self) -> None:
        field = FieldDefinition("Blob", "binary varying")  # type: ignore[arg-type]
        assert field.type is FieldType.BINARY_VARYING

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            FieldDefinition("X", "JSONB")  # type: ignore[arg-type]

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="name"):
            FieldDefinition("")

    def test_from_mapping_accepts_wire_keys(self) -> None:
        field = FieldDefinition.from_mapping({"Name": "Qty", "Type": "INT", "Nullable": False})
        assert field == FieldDefinition("Qty", FieldType.INT, nullable=False)

    def test_fields_payload_mixes_definitions_and_mappings(self) -> None:
        payload = fields_payload([FieldDefinition("A"), {"name": "B", "type": "date"}])
        assert [f["Type"] for f in payload] == ["VARCHAR", "DATE"]


class TestScriptInvocation:
    def test_body_with_parameter(self) -> None:
        assert ScriptInvocation("Orders", "Recalc", "42").body() == {"scriptParameterValue": "42"}

    def test_no_parameter_no_body(self) -> None:
        assert ScriptInvocation(None, "Recalc").body() is None

    def test_empty_parameter_still_sent(self) -> None:
        assert ScriptInvocation(None, "Recalc", "").body() == {"scriptParameterValue": ""}


class TestExtractScriptResult:
    def test_result_parameter(self) -> None:
        result = {"scriptResult": {"code": 0, "resultParameter": "done"}}
        assert extract_script_result(result) == "done"

    def test_plain_string_result(self) -> None:
        assert extract_script_result({"scriptResult": "done"}) == "done"

    def test_value_fallback(self) -> None:
        assert extract_script_result({"value": "done"}) == "done"

    def test_empty_response(self) -> None:
        assert extract_script_result({}) is None
        assert extract_script_result(None) is None

    def test_error_code_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        result = {"scriptResult": {"code": 3, "resultParameter": ""}}
        with caplog.at_level(logging.WARNING, logger="fmodata.scripts"):
            assert extract_script_result(result) is None
        assert "error code 3" in caplog.text


class TestNullableParsing:
    @pytest.mark.parametrize("text", ["false", "False", "0", "no", " NO "])
    def test_false_strings(self, text: str) -> None:
        assert FieldDefinition.from_mapping({"Name": "A", "Nullable": text}).nullable is False

    @pytest.mark.parametrize("value", ["true", "1", "yes", True, 1])
    def test_true_values(self, value: object) -> None:
        assert FieldDefinition.from_mapping({"Name": "A", "Nullable": value}).nullable is True

    def test_missing_defaults_to_nullable(self) -> None:
        assert FieldDefinition.from_mapping({"Name": "A"}).nullable is True

    def test_unrecognized_value_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid Nullable"):
            FieldDefinition.from_mapping({"Name": "A", "Nullable": "maybe"})

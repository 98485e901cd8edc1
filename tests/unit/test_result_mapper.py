"""Unit tests for ResultMapper and type mapping."""

import base64
import datetime
import decimal
import uuid

import oracledb
import pytest

from ora_mcp.config.settings import SecurityConfig
from ora_mcp.models.query import ColumnDescriptor, TargetType
from ora_mcp.services.result_mapper import (
    TRUNCATION_MARKER,
    ResultMapper,
    describe_columns,
    map_type,
    native_type_name,
    parse_iso,
    to_iso,
)


def column(name: str, native_type: str) -> ColumnDescriptor:
    return ColumnDescriptor(name=name, native_type=native_type, inferred_type=map_type(native_type))


class TestMapType:
    """Tests for map_type."""

    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            ("VARCHAR2(100)", TargetType.STRING),
            ("varchar2", TargetType.STRING),
            ("CLOB", TargetType.STRING),
            ("NUMBER(10,2)", TargetType.NUMBER),
            ("BINARY_DOUBLE", TargetType.NUMBER),
            ("DATE", TargetType.DATE),
            ("TIMESTAMP(6)", TargetType.DATE),
            ("TIMESTAMP(6) WITH TIME ZONE", TargetType.DATE),
            ("TIMESTAMP WITH LOCAL TIME ZONE", TargetType.DATE),
            ("BLOB", TargetType.BINARY),
            ("RAW(16)", TargetType.BINARY),
            ("BOOLEAN", TargetType.BOOLEAN),
            ("JSON", TargetType.OBJECT),
        ],
    )
    def test_known_types(self, native: str, expected: TargetType) -> None:
        assert map_type(native) is expected

    @pytest.mark.parametrize("native", ["SDO_GEOMETRY", "INTERVAL DAY(2) TO SECOND(6)", "", None, "((("])
    def test_unknown_falls_back_to_object(self, native: str | None) -> None:
        assert map_type(native) is TargetType.OBJECT

    def test_driver_type_names(self) -> None:
        assert native_type_name(oracledb.DB_TYPE_NUMBER) == "NUMBER"
        assert native_type_name(oracledb.DB_TYPE_VARCHAR) == "VARCHAR2"
        assert native_type_name(oracledb.DB_TYPE_TIMESTAMP_TZ) == "TIMESTAMP WITH TIME ZONE"
        assert native_type_name("clob") == "CLOB"
        assert native_type_name(None) == ""


class TestIso:
    """Tests for ISO-8601 conversion."""

    def test_naive_datetime(self) -> None:
        value = datetime.datetime(2024, 1, 15, 14, 30, 0, 123456)
        assert to_iso(value) == "2024-01-15T14:30:00.123"

    def test_aware_datetime_converted_to_utc(self) -> None:
        tz = datetime.timezone(datetime.timedelta(hours=2))
        value = datetime.datetime(2024, 1, 15, 14, 30, tzinfo=tz)
        assert to_iso(value) == "2024-01-15T12:30:00.000Z"

    def test_date(self) -> None:
        assert to_iso(datetime.date(2024, 1, 15)) == "2024-01-15"

    @pytest.mark.parametrize(
        "value",
        [
            datetime.datetime(2024, 1, 15, 14, 30, 0, 123000),
            datetime.datetime(1999, 12, 31, 23, 59, 59, 999000),
            datetime.datetime(2024, 2, 29, 0, 0, tzinfo=datetime.UTC),
        ],
    )
    def test_round_trip_to_millisecond(self, value: datetime.datetime) -> None:
        assert parse_iso(to_iso(value)) == value

    def test_round_trip_drops_sub_millisecond(self) -> None:
        value = datetime.datetime(2024, 1, 15, 14, 30, 0, 123999)
        assert parse_iso(to_iso(value)) == value.replace(microsecond=123000)

    @pytest.mark.parametrize("text", [None, "", "not a date", "2024-13-01"])
    def test_parse_invalid(self, text: str | None) -> None:
        assert parse_iso(text) is None


class TestMapValue:
    """Tests for ResultMapper.map_value."""

    @pytest.fixture
    def mapper(self) -> ResultMapper:
        return ResultMapper(clob_max_chars=4000, blob_max_bytes=1024)

    def test_null(self, mapper: ResultMapper) -> None:
        assert mapper.map_value(None, "VARCHAR2") is None

    def test_clob_truncated(self, mapper: ResultMapper) -> None:
        result = mapper.map_value("x" * 5000, "CLOB")
        assert result == "x" * 4000 + TRUNCATION_MARKER
        assert len(result) == 4000 + len(TRUNCATION_MARKER)

    def test_clob_at_threshold_unchanged(self, mapper: ResultMapper) -> None:
        value = "y" * 4000
        assert mapper.map_value(value, "CLOB") == value

    def test_plain_string_also_truncated(self, mapper: ResultMapper) -> None:
        assert mapper.map_value("z" * 4001, "VARCHAR2").endswith(TRUNCATION_MARKER)

    def test_blob_truncated_before_encoding(self, mapper: ResultMapper) -> None:
        data = bytes(range(256)) * 8  # 2048 bytes
        result = mapper.map_value(data, "BLOB")
        encoded, marker = result[: -len(TRUNCATION_MARKER)], result[-len(TRUNCATION_MARKER) :]
        assert marker == TRUNCATION_MARKER
        assert base64.b64decode(encoded) == data[:1024]

    def test_small_blob_unmarked(self, mapper: ResultMapper) -> None:
        assert mapper.map_value(b"\x00\x01\x02", "RAW") == "AAEC"

    def test_raw_hex_text(self) -> None:
        mapper = ResultMapper(blob_max_bytes=2)
        assert mapper.map_value("A1B2C3", "RAW") == "A1B2" + TRUNCATION_MARKER

    def test_datetime(self, mapper: ResultMapper) -> None:
        assert mapper.map_value(datetime.datetime(2024, 1, 15, 14, 30), "DATE") == "2024-01-15T14:30:00.000"

    def test_decimal(self, mapper: ResultMapper) -> None:
        assert mapper.map_value(decimal.Decimal("42"), "NUMBER") == 42
        assert isinstance(mapper.map_value(decimal.Decimal("42"), "NUMBER"), int)
        assert mapper.map_value(decimal.Decimal("3.25"), "NUMBER") == 3.25

    def test_interval_and_uuid(self, mapper: ResultMapper) -> None:
        assert mapper.map_value(datetime.timedelta(days=1, hours=2)) == "1 day, 2:00:00"
        value = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert mapper.map_value(value) == "12345678-1234-5678-1234-567812345678"

    @pytest.mark.parametrize("value", [7, 2.5, True, {"a": 1}])
    def test_pass_through(self, mapper: ResultMapper, value: object) -> None:
        assert mapper.map_value(value, "NUMBER") == value


class TestMapRow:
    """Tests for row mapping."""

    @pytest.fixture
    def columns(self) -> list[ColumnDescriptor]:
        return [column("ID", "NUMBER"), column("NAME", "VARCHAR2"), column("HIRED", "DATE")]

    def test_positional_row(self, columns: list[ColumnDescriptor]) -> None:
        row = (decimal.Decimal("1"), "Alice", datetime.datetime(2024, 1, 15))
        assert ResultMapper().map_row(row, columns) == {
            "ID": 1,
            "NAME": "Alice",
            "HIRED": "2024-01-15T00:00:00.000",
        }

    def test_null_keeps_key(self, columns: list[ColumnDescriptor]) -> None:
        result = ResultMapper().map_row((2, None, None), columns)
        assert result == {"ID": 2, "NAME": None, "HIRED": None}

    def test_mapping_row_with_missing_key(self, columns: list[ColumnDescriptor]) -> None:
        result = ResultMapper().map_row({"ID": 3, "NAME": ""}, columns)
        assert result == {"ID": 3, "NAME": "", "HIRED": None}

    def test_short_positional_row(self, columns: list[ColumnDescriptor]) -> None:
        assert ResultMapper().map_row((4,), columns)["HIRED"] is None

    def test_map_rows(self, columns: list[ColumnDescriptor]) -> None:
        rows = ResultMapper().map_rows([(1, "a", None), {"ID": 2, "NAME": "b"}], columns)
        assert [row["ID"] for row in rows] == [1, 2]


class TestDescribeColumns:
    def test_from_description(self) -> None:
        description = [
            ("ID", oracledb.DB_TYPE_NUMBER, 11, None, 10, 0, False),
            ("NOTES", "CLOB", None, None, None, None, True),
        ]
        columns = describe_columns(description)

        assert [c.name for c in columns] == ["ID", "NOTES"]
        assert columns[0].native_type == "NUMBER"
        assert columns[0].inferred_type is TargetType.NUMBER
        assert columns[0].nullable is False
        assert columns[0].precision == 10
        assert columns[1].inferred_type is TargetType.STRING

    def test_none(self) -> None:
        assert describe_columns(None) == []

    def test_from_config(self) -> None:
        mapper = ResultMapper.from_config(SecurityConfig(clob_max_chars=10, blob_max_bytes=5))
        assert mapper.clob_max_chars == 10
        assert mapper.blob_max_bytes == 5

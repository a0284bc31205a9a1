"""Operations of the JSON SQL model consumed by the SQL sink."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any


class SqlType(enum.Enum):
    """Supported SQL data types."""

    BOOL = "Bool"
    CHAR = "Char"
    SMALL_INT = "SmallInt"
    INT = "Int"
    BIG_INT = "BigInt"
    FLOAT = "Float"
    DOUBLE_PRECISION = "DoublePrecision"
    TEXT = "Text"
    BYTES = "Bytes"
    NUMERIC = "Numeric"
    TIMESTAMP = "Timestamp"
    DATE = "Date"
    TIME = "Time"
    UUID = "Uuid"
    JSON = "Json"


def _field(data: dict, name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise ValueError(f"missing field `{name}`") from None


def _string(data: dict, name: str) -> str:
    value = _field(data, name)
    if not isinstance(value, str):
        raise ValueError(f"invalid type for `{name}`: {value!r}, expected a string")
    return value


def _sql_type(value: Any) -> SqlType:
    try:
        return SqlType(value)
    except ValueError:
        expected = ", ".join(f"`{member.value}`" for member in SqlType)
        raise ValueError(f"unknown variant `{value}`, expected one of {expected}") from None


@dataclass(frozen=True)
class Value:
    """A value with its SQL column name and type."""

    column: str
    raw_value: str
    type: SqlType

    @classmethod
    def _from_json(cls, data: Any) -> "Value":
        if not isinstance(data, dict):
            raise ValueError(f"invalid type: {data!r}, expected struct Value")
        return cls(
            column=_string(data, "column"),
            raw_value=_string(data, "raw_value"),
            type=_sql_type(_field(data, "type")),
        )

    def _to_json(self) -> dict[str, str]:
        return {"column": self.column, "raw_value": self.raw_value, "type": self.type.value}


@dataclass
class InsertOperation:
    """Insert one row of values into a table."""

    table: str
    values: list[Value]

    def to_dict(self) -> dict[str, Any]:
        return {"Insert": {"table": self.table,
                           "values": [value._to_json() for value in self.values]}}


_OPERATIONS = ("Insert",)


def parse_operation(data: str | bytes | bytearray | dict) -> InsertOperation:
    """Read an operation from its JSON text or object."""
    if isinstance(data, (str, bytes, bytearray)):
        data = json.loads(data)
    if isinstance(data, str):
        raise ValueError(f"invalid type: unit variant `{data}`, expected struct variant")
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError(f"invalid type: {data!r}, expected enum Operation")
    ((tag, body),) = data.items()
    if tag not in _OPERATIONS:
        raise ValueError(f"unknown variant `{tag}`, expected `Insert`")
    if not isinstance(body, dict):
        raise ValueError(f"invalid type: {body!r}, expected struct variant Operation::Insert")
    values = _field(body, "values")
    if not isinstance(values, list):
        raise ValueError(f"invalid type for `values`: {values!r}, expected a sequence")
    return InsertOperation(
        table=_string(body, "table"),
        values=[Value._from_json(item) for item in values],
    )
"""Events of the Postgres logical replication stream, as carried in JSON records."""

from __future__ import annotations

import enum
import json
import math
import struct
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, Union

_INT_RANGES = {
    "i8": (-(2**7), 2**7 - 1),
    "i16": (-(2**15), 2**15 - 1),
    "i32": (-(2**31), 2**31 - 1),
    "i64": (-(2**63), 2**63 - 1),
    "u32": (0, 2**32 - 1),
    "u64": (0, 2**64 - 1),
}


def _int(value: Any, kind: str, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"invalid type for `{name}`: {value!r}, expected {kind}")
    low, high = _INT_RANGES[kind]
    if not low <= value <= high:
        raise ValueError(f"invalid value for `{name}`: {value}, expected {kind}")
    return value


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"invalid type for `{name}`: {value!r}, expected a number")
    return float(value)


def _to_f32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _shortest_f32(value: float) -> str:
    """Shortest decimal text that reads back as the same 32-bit float."""
    if not math.isfinite(value):
        return repr(value)
    for digits in range(1, 18):
        text = f"{value:.{digits}g}"
        if _to_f32(float(text)) == value:
            return text
    return repr(value)


def _display_float(text: str) -> str:
    """Plain decimal rendering: no exponent, no trailing fractional zeros."""
    number = float(text)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    rendered = format(Decimal(text), "f")
    if "." in rendered:
        rendered = rendered.rstrip("0").rstrip(".")
    return rendered


_UNIT_KINDS = ("Null", "UnchangedToast")
_INT_KINDS = {"Char": "i8", "Int2": "i16", "Int4": "i32", "Oid": "u32", "Int8": "i64"}


@dataclass(frozen=True)
class TupleData:
    """The data of one column as it appears in the replication stream."""

    kind: str
    value: Any = None

    def __post_init__(self) -> None:
        kind, value = self.kind, self.value
        if kind in _UNIT_KINDS:
            if value is not None:
                raise ValueError(f"{kind} carries no value")
        elif kind == "Bool":
            if not isinstance(value, bool):
                raise ValueError(f"invalid type for `Bool`: {value!r}, expected a boolean")
        elif kind in _INT_KINDS:
            _int(value, _INT_KINDS[kind], kind)
        elif kind == "Float4":
            object.__setattr__(self, "value", _to_f32(_number(value, kind)))
        elif kind == "Float8":
            object.__setattr__(self, "value", _number(value, kind))
        elif kind == "String":
            if not isinstance(value, str):
                raise ValueError(f"invalid type for `String`: {value!r}, expected a string")
        elif kind == "RawText":
            if isinstance(value, (int, str)) or value is None:
                raise ValueError(f"invalid type for `RawText`: {value!r}, expected bytes")
            try:
                object.__setattr__(self, "value", bytes(value))
            except (TypeError, ValueError):
                raise ValueError(f"invalid value for `RawText`: {value!r}") from None
        else:
            raise ValueError(f"unknown variant `{kind}`")

    def _describe(self) -> str:
        if self.kind in _UNIT_KINDS:
            return self.kind
        if self.kind == "RawText":
            return f"RawText([{', '.join(str(b) for b in self.value)}])"
        if self.kind == "String":
            return f"String({json.dumps(self.value)})"
        return f"{self.kind}({self.to_sql()})"

    def to_sql(self) -> str:
        """Render the value as an SQL literal."""
        if self.kind == "Bool":
            return "true" if self.value else "false"
        if self.kind in _INT_KINDS:
            return str(self.value)
        if self.kind == "Float4":
            return _display_float(_shortest_f32(self.value))
        if self.kind == "Float8":
            return _display_float(repr(self.value))
        if self.kind == "String":
            return f"'{self.value}'"
        raise ValueError(f"Unsupported tupple type {self._describe()}")

    @classmethod
    def _from_json(cls, data: Any) -> "TupleData":
        if isinstance(data, str):
            if data not in _UNIT_KINDS:
                raise ValueError(f"unknown variant `{data}`")
            return cls(data)
        if isinstance(data, dict) and len(data) == 1:
            ((kind, value),) = data.items()
            if kind in _UNIT_KINDS:
                raise ValueError(f"invalid type: variant `{kind}` carries no value")
            return cls(kind, value)
        raise ValueError(f"invalid type: {data!r}, expected enum TupleData")

    def _to_json(self) -> Any:
        if self.kind in _UNIT_KINDS:
            return self.kind
        if self.kind == "RawText":
            return {self.kind: list(self.value)}
        if self.kind in ("Float4", "Float8"):
            if not math.isfinite(self.value):
                return {self.kind: None}
            text = _shortest_f32(self.value) if self.kind == "Float4" else repr(self.value)
            return {self.kind: float(text)}
        return {self.kind: self.value}


class ReplicaIdentity(enum.Enum):
    """The REPLICA IDENTITY setting of a table."""

    DEFAULT = "Default"
    NOTHING = "Nothing"
    FULL = "Full"
    INDEX = "Index"


def _kind(kind: str) -> Any:
    return field(metadata={"kind": kind})


def _field(data: dict, name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise ValueError(f"missing field `{name}`") from None


def _tuple_from(value: Any, name: str) -> list[TupleData]:
    if not isinstance(value, list):
        raise ValueError(f"invalid type for `{name}`: {value!r}, expected a sequence")
    return [TupleData._from_json(item) for item in value]


def _decode(kind: str, value: Any, name: str) -> Any:
    if kind in _INT_RANGES:
        return _int(value, kind, name)
    if kind == "str":
        if not isinstance(value, str):
            raise ValueError(f"invalid type for `{name}`: {value!r}, expected a string")
        return value
    if kind == "tuple":
        return _tuple_from(value, name)
    if kind == "opt_tuple":
        return None if value is None else _tuple_from(value, name)
    if kind == "columns":
        if not isinstance(value, list):
            raise ValueError(f"invalid type for `{name}`: {value!r}, expected a sequence")
        return [_build(Column, item) for item in value]
    if kind == "replica":
        try:
            return ReplicaIdentity(value)
        except ValueError:
            expected = ", ".join(f"`{m.value}`" for m in ReplicaIdentity)
            raise ValueError(f"unknown variant `{value}`, expected one of {expected}") from None
    if kind == "u32_list":
        if not isinstance(value, list):
            raise ValueError(f"invalid type for `{name}`: {value!r}, expected a sequence")
        return [_int(item, "u32", name) for item in value]
    raise ValueError(f"unsupported field kind {kind}")


def _encode(kind: str, value: Any) -> Any:
    if kind in ("tuple", "opt_tuple"):
        return None if value is None else [item._to_json() for item in value]
    if kind == "columns":
        return [_dump(column) for column in value]
    if kind == "replica":
        return value.value
    if kind == "u32_list":
        return list(value)
    return value


def _build(cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"invalid type: {data!r}, expected struct {cls.__name__}")
    kwargs = {}
    for spec in fields(cls):
        kind = spec.metadata["kind"]
        if spec.name in data:
            raw = data[spec.name]
        elif kind == "opt_tuple":
            raw = None
        else:
            raise ValueError(f"missing field `{spec.name}`")
        kwargs[spec.name] = _decode(kind, raw, spec.name)
    return cls(**kwargs)


def _dump(obj: Any) -> dict[str, Any]:
    return {spec.name: _encode(spec.metadata["kind"], getattr(obj, spec.name))
            for spec in fields(obj)}


@dataclass
class Column:
    """A column of a relation; ``flags`` is 1 for key columns."""

    flags: int = _kind("i8")
    name: str = _kind("str")
    type_id: int = _kind("i32")
    type_modifier: int = _kind("i32")


@dataclass
class BeginBody:
    """The beginning of a transaction."""

    final_lsn: int = _kind("u64")
    timestamp: int = _kind("i64")
    xid: int = _kind("u32")


@dataclass
class CommitBody:
    """The end of a committed transaction."""

    flags: int = _kind("i8")
    commit_lsn: int = _kind("u64")
    end_lsn: int = _kind("u64")
    timestamp: int = _kind("i64")


@dataclass
class OriginBody:
    """Names the upstream node a transaction originated on."""

    commit_lsn: int = _kind("u64")
    name: str = _kind("str")


@dataclass
class RelationBody:
    """The schema of a relation."""

    rel_id: int = _kind("u32")
    namespace: str = _kind("str")
    name: str = _kind("str")
    replica_identity: ReplicaIdentity = _kind("replica")
    columns: list[Column] = _kind("columns")


@dataclass
class TypeBody:
    """A data type announcement."""

    id: int = _kind("u32")
    namespace: str = _kind("str")
    name: str = _kind("str")


@dataclass
class InsertBody:
    """A row inserted into a relation."""

    rel_id: int = _kind("u32")
    tuple: list[TupleData] = _kind("tuple")


@dataclass
class UpdateBody:
    """A row updated in a relation."""

    rel_id: int = _kind("u32")
    old_tuple: list[TupleData] | None = _kind("opt_tuple")
    key_tuple: list[TupleData] | None = _kind("opt_tuple")
    new_tuple: list[TupleData] = _kind("tuple")


@dataclass
class DeleteBody:
    """A row deleted from a relation."""

    rel_id: int = _kind("u32")
    old_tuple: list[TupleData] | None = _kind("opt_tuple")
    key_tuple: list[TupleData] | None = _kind("opt_tuple")


@dataclass
class TruncateBody:
    """Relations truncated; ``options`` is 1 for CASCADE, 2 for RESTART IDENTITY."""

    options: int = _kind("i8")
    rel_ids: list[int] = _kind("u32_list")


Message = Union[BeginBody, CommitBody, OriginBody, RelationBody, TypeBody,
                InsertBody, UpdateBody, DeleteBody, TruncateBody]

_MESSAGE_TYPES: dict[str, type] = {
    "begin": BeginBody,
    "commit": CommitBody,
    "origin": OriginBody,
    "relation": RelationBody,
    "type": TypeBody,
    "insert": InsertBody,
    "update": UpdateBody,
    "delete": DeleteBody,
    "truncate": TruncateBody,
}
_TAG_BY_CLASS = {cls: tag for tag, cls in _MESSAGE_TYPES.items()}


def parse_message(data: Any) -> Message:
    """Build a message body from its JSON object, selected by its ``type`` tag."""
    if not isinstance(data, dict):
        raise ValueError(f"invalid type: {data!r}, expected internally tagged enum")
    tag = _field(data, "type")
    cls = _MESSAGE_TYPES.get(tag) if isinstance(tag, str) else None
    if cls is None:
        expected = ", ".join(f"`{name}`" for name in _MESSAGE_TYPES)
        raise ValueError(f"unknown variant `{tag}`, expected one of {expected}")
    return _build(cls, data)


def message_to_dict(message: Message) -> dict[str, Any]:
    """The JSON object of a message body, with its ``type`` tag first."""
    tag = _TAG_BY_CLASS.get(type(message))
    if tag is None:
        raise TypeError(f"not a replication message: {type(message).__name__}")
    return {"type": tag, **_dump(message)}


@dataclass
class ReplicationEvent:
    """One top-level event from the logical replication stream."""

    wal_start: int
    wal_end: int
    timestamp: int
    message: Message

    @classmethod
    def from_json(cls, data: str | bytes | bytearray | dict) -> "ReplicationEvent":
        if isinstance(data, (str, bytes, bytearray)):
            data = json.loads(data)
        if not isinstance(data, dict):
            raise ValueError(f"invalid type: {data!r}, expected struct ReplicationEvent")
        return cls(
            wal_start=_int(_field(data, "wal_start"), "u64", "wal_start"),
            wal_end=_int(_field(data, "wal_end"), "u64", "wal_end"),
            timestamp=_int(_field(data, "timestamp"), "i64", "timestamp"),
            message=parse_message(_field(data, "message")),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "wal_start": self.wal_start,
                "wal_end": self.wal_end,
                "timestamp": self.timestamp,
                "message": message_to_dict(self.message),
            },
            separators=(",", ":"),
        )
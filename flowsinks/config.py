"""Connector configuration files: loading, validation and command-line parameters."""

from __future__ import annotations

import enum
import json
import math
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml


class ConnectorLoadError(Exception):
    """Raised when a connector configuration cannot be loaded."""

    YAML = "yaml"
    IO = "io"
    BYTE_SIZE = "byte_size"

    _PREFIXES = {YAML: "Invalid yaml", IO: "IO Error", BYTE_SIZE: "ByteSize"}

    def __init__(self, kind: str, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{self._PREFIXES[kind]}: {detail}")


@dataclass(frozen=True)
class SecretString:
    """A string that never reveals its content when printed."""

    value: str = field(default="", repr=False)

    def expose(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return "[REDACTED]"

    def __str__(self) -> str:
        return "[REDACTED]"


class Compression(enum.Enum):
    NONE = "none"
    GZIP = "gzip"
    SNAPPY = "snappy"
    LZ4 = "lz4"

    @classmethod
    def parse(cls, text: str) -> "Compression":
        for member in cls:
            if member.value == text:
                return member
        expected = ", ".join(f"`{m.value}`" for m in cls)
        raise ValueError(f"unknown variant `{text}`, expected one of {expected}")

    def __str__(self) -> str:
        return self.value


# --- durations -------------------------------------------------------------

_NS_PER_UNIT = {
    **dict.fromkeys(("nanos", "nsec", "ns"), 1),
    **dict.fromkeys(("usec", "us", "µs"), 1_000),
    **dict.fromkeys(("millis", "msec", "ms"), 1_000_000),
    **dict.fromkeys(("seconds", "second", "sec", "s"), 1_000_000_000),
    **dict.fromkeys(("minutes", "minute", "min", "m"), 60 * 1_000_000_000),
    **dict.fromkeys(("hours", "hour", "hr", "h"), 3_600 * 1_000_000_000),
    **dict.fromkeys(("days", "day", "d"), 86_400 * 1_000_000_000),
    **dict.fromkeys(("weeks", "week", "w"), 7 * 86_400 * 1_000_000_000),
    **dict.fromkeys(("months", "month", "M"), 2_630_016 * 1_000_000_000),
    **dict.fromkeys(("years", "year", "y"), 31_557_600 * 1_000_000_000),
}

_DURATION_PART = re.compile(r"\s*(\d+)\s*([^\d\s]*)")


def parse_duration(text: str) -> timedelta:
    """Parse a human readable duration such as ``150ms`` or ``1h 30m``."""
    stripped = text.strip()
    if not stripped:
        raise ValueError("value was empty")
    total_ns = 0
    pos = 0
    while pos < len(stripped):
        match = _DURATION_PART.match(stripped, pos)
        if match is None:
            raise ValueError(f"expected number at {pos}")
        number, unit = match.groups()
        if not unit:
            raise ValueError("time unit needed, for example 1sec or 1ms")
        if unit not in _NS_PER_UNIT:
            raise ValueError(f"unknown time unit {unit!r}")
        total_ns += int(number) * _NS_PER_UNIT[unit]
        pos = match.end()
    return timedelta(microseconds=total_ns / 1_000)


def _format_duration(value: timedelta) -> str:
    total_us = value // timedelta(microseconds=1)
    if total_us == 0:
        return "0s"
    parts = []
    for unit, size in (("d", 86_400_000_000), ("h", 3_600_000_000), ("m", 60_000_000),
                       ("s", 1_000_000), ("ms", 1_000), ("us", 1)):
        count, total_us = divmod(total_us, size)
        if count:
            parts.append(f"{count}{unit}")
    return " ".join(parts)


# --- byte sizes -------------------------------------------------------------

_BYTE_UNITS = {
    "": 1, "b": 1,
    "k": 10**3, "kb": 10**3, "ki": 2**10, "kib": 2**10,
    "m": 10**6, "mb": 10**6, "mi": 2**20, "mib": 2**20,
    "g": 10**9, "gb": 10**9, "gi": 2**30, "gib": 2**30,
    "t": 10**12, "tb": 10**12, "ti": 2**40, "tib": 2**40,
    "p": 10**15, "pb": 10**15, "pi": 2**50, "pib": 2**50,
}


def parse_byte_size(text: str) -> int:
    """Parse a size such as ``44.0 MB`` into a number of bytes."""
    value = text.strip()
    match = re.match(r"[0-9.]*", value)
    number = match.group(0) if match else ""
    try:
        amount = float(number)
    except ValueError as exc:
        raise ValueError(f"couldn't parse {json.dumps(value)} into a ByteSize, {exc}") from None
    suffix = value[len(number):].strip()
    multiplier = _BYTE_UNITS.get(suffix.lower())
    if multiplier is None:
        quoted = json.dumps(suffix)
        raise ValueError(
            f"couldn't parse {quoted} into a known SI unit, couldn't parse unit of {quoted}"
        )
    return int(amount * multiplier)


# --- YAML loading -----------------------------------------------------------

class _Int(int):
    source: str


class _Float(float):
    source: str


class _Loader(yaml.SafeLoader):
    """Safe loader with core-schema scalar resolution that remembers number text."""

    yaml_implicit_resolvers: dict = {}


_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:bool", re.compile(r"^(?:true|false)$"), list("tf"))
_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:null", re.compile(r"^(?:~|null|Null|NULL|)$"), ["~", "n", "N", ""])
_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:int",
    re.compile(r"^(?:[-+]?[0-9]+|0x[0-9a-fA-F]+|0o[0-7]+)$"), list("-+0123456789"))
_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:float",
    re.compile(r"^(?:[-+]?(?:\.[0-9]+|[0-9]+(?:\.[0-9]*)?)(?:[eE][-+]?[0-9]+)?"
               r"|[-+]?\.(?:inf|Inf|INF)|\.(?:nan|NaN|NAN))$"),
    list("-+.0123456789"))


def _construct_int(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> _Int:
    text = loader.construct_scalar(node)
    if text.startswith("0x"):
        result = _Int(int(text[2:], 16))
    elif text.startswith("0o"):
        result = _Int(int(text[2:], 8))
    else:
        result = _Int(int(text, 10))
    result.source = text
    return result


def _construct_float(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> _Float:
    text = loader.construct_scalar(node)
    lowered = text.lower()
    if lowered.endswith(".inf"):
        number = -math.inf if lowered.startswith("-") else math.inf
    elif lowered == ".nan":
        number = math.nan
    else:
        number = float(text)
    result = _Float(number)
    result.source = text
    return result


_Loader.add_constructor("tag:yaml.org,2002:int", _construct_int)
_Loader.add_constructor("tag:yaml.org,2002:float", _construct_float)


def _format_float(value: float) -> str:
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return repr(value)


def _scalar_text(value: Any) -> str:
    """Text of a scalar as read into a string field."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (_Int, _Float)):
        return value.source
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"invalid type: {type(value).__name__}, expected a string")


def parse_parameter_value(value: Any) -> str | list[str] | dict[str, str]:
    """Normalise a connector parameter to a string, a list of strings or a string map."""
    if isinstance(value, dict):
        return {_scalar_text(k): _scalar_text(v) for k, v in sorted(
            value.items(), key=lambda item: _scalar_text(item[0]))}
    if isinstance(value, (list, tuple)):
        return [_scalar_text(item) for item in value]
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return _format_float(float(value))
    if isinstance(value, str):
        return value
    raise ValueError("invalid type, expected string, map or sequence")


def _json_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


# --- configuration model ----------------------------------------------------

@dataclass
class ProducerParameters:
    linger: timedelta | None = None
    compression: Compression | None = None
    batch_size_string: str | None = None
    batch_size: int | None = None


@dataclass
class ConsumerParameters:
    partition: int | None = None


@dataclass
class TransformationStep:
    uses: str
    with_: dict[str, str] = field(default_factory=dict)


_REQUIRED = ("name", "type", "topic", "version")


def _producer_from(data: Any) -> ProducerParameters:
    if not isinstance(data, dict):
        raise ValueError("invalid type, expected struct ProducerParameters")
    producer = ProducerParameters()
    if data.get("linger") is not None:
        text = _scalar_text(data["linger"])
        try:
            producer.linger = parse_duration(text)
        except ValueError:
            raise ValueError(
                f"invalid value: string {json.dumps(text)}, expected a duration"
            ) from None
    if data.get("compression") is not None:
        producer.compression = Compression.parse(_scalar_text(data["compression"]))
    if data.get("batch-size") is not None:
        producer.batch_size_string = _scalar_text(data["batch-size"])
    return producer


def _consumer_from(data: Any) -> ConsumerParameters:
    if not isinstance(data, dict):
        raise ValueError("invalid type, expected struct ConsumerParameters")
    partition = data.get("partition")
    if partition is not None and (isinstance(partition, bool) or not isinstance(partition, int)):
        raise ValueError("invalid type for partition, expected i32")
    return ConsumerParameters(None if partition is None else int(partition))


def _transforms_from(data: Any) -> list[TransformationStep]:
    if not isinstance(data, list):
        raise ValueError("invalid type for transforms, expected a sequence")
    steps = []
    for entry in data:
        if not isinstance(entry, dict) or "uses" not in entry:
            raise ValueError("missing field `uses`")
        with_ = entry.get("with") or {}
        steps.append(TransformationStep(
            uses=_scalar_text(entry["uses"]),
            with_={str(k): _json_string(v) for k, v in sorted(with_.items())},
        ))
    return steps


@dataclass
class ConnectorConfig:
    name: str = ""
    type: str = ""
    topic: str = ""
    version: str = ""
    parameters: dict[str, str | list[str] | dict[str, str]] = field(default_factory=dict)
    secrets: dict[str, SecretString] = field(default_factory=dict)
    producer: ProducerParameters | None = None
    consumer: ConsumerParameters | None = None
    transforms: list[TransformationStep] | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> "ConnectorConfig":
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConnectorLoadError(ConnectorLoadError.IO, str(exc)) from exc
        return cls.from_yaml(text)

    @classmethod
    def from_yaml(cls, text: str) -> "ConnectorConfig":
        try:
            data = yaml.load(text, Loader=_Loader)
        except yaml.YAMLError as exc:
            raise ConnectorLoadError(ConnectorLoadError.YAML, str(exc)) from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> "ConnectorConfig":
        try:
            if not isinstance(data, dict):
                raise ValueError("invalid type, expected struct ConnectorConfig")
            for key in _REQUIRED:
                if key not in data:
                    raise ValueError(f"missing field `{key}`")
            config = cls(
                name=_scalar_text(data["name"]),
                type=_scalar_text(data["type"]),
                topic=_scalar_text(data["topic"]),
                version=_scalar_text(data["version"]),
                parameters={
                    _scalar_text(k): parse_parameter_value(v)
                    for k, v in sorted((data.get("parameters") or {}).items(),
                                       key=lambda item: _scalar_text(item[0]))
                },
                secrets={
                    _scalar_text(k): SecretString(_scalar_text(v))
                    for k, v in (data.get("secrets") or {}).items()
                },
            )
            if data.get("producer") is not None:
                config.producer = _producer_from(data["producer"])
            if data.get("consumer") is not None:
                config.consumer = _consumer_from(data["consumer"])
            if data.get("transforms") is not None:
                config.transforms = _transforms_from(data["transforms"])
        except ValueError as exc:
            raise ConnectorLoadError(ConnectorLoadError.YAML, str(exc)) from exc

        producer = config.producer
        if producer is not None and producer.batch_size_string is not None:
            try:
                producer.batch_size = parse_byte_size(producer.batch_size_string)
            except ValueError as exc:
                raise ConnectorLoadError(ConnectorLoadError.BYTE_SIZE, str(exc)) from exc
        return config

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name, "type": self.type,
            "topic": self.topic, "version": self.version,
        }
        if self.parameters:
            data["parameters"] = {
                k: (list(v) if isinstance(v, list) else dict(v) if isinstance(v, dict) else v)
                for k, v in self.parameters.items()
            }
        if self.secrets:
            data["secrets"] = {k: v.expose() for k, v in self.secrets.items()}
        if self.producer is not None:
            producer: dict[str, Any] = {}
            if self.producer.linger is not None:
                producer["linger"] = _format_duration(self.producer.linger)
            if self.producer.compression is not None:
                producer["compression"] = self.producer.compression.value
            if self.producer.batch_size_string is not None:
                producer["batch-size"] = self.producer.batch_size_string
            data["producer"] = producer
        if self.consumer is not None:
            data["consumer"] = (
                {} if self.consumer.partition is None
                else {"partition": self.consumer.partition}
            )
        if self.transforms is not None:
            data["transforms"] = [
                {"uses": step.uses, "with": dict(step.with_)} for step in self.transforms
            ]
        return data

    def consumer_parameters(self) -> list[str]:
        if self.consumer is None or self.consumer.partition is None:
            return []
        return ["--consumer-partition", str(self.consumer.partition)]

    def producer_parameters(self) -> list[str]:
        params: list[str] = []
        producer = self.producer
        if producer is None:
            return params
        if producer.linger is not None:
            params += ["--producer-linger", f"{producer.linger // timedelta(milliseconds=1)}ms"]
        if producer.compression is not None:
            params += ["--producer-compression", str(producer.compression)]
        if producer.batch_size_string is not None:
            params += ["--producer-batch-size", producer.batch_size_string]
        return params
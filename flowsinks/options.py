"""Command-line options shared by every connector."""

from __future__ import annotations

import argparse
import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache
from typing import Any

from flowsinks.config import Compression, parse_byte_size, parse_duration

_LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 1,
}


@dataclass
class TransformOpt:
    """One transformation step: the module it uses and its parameters."""

    uses: str
    with_: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, text: str) -> "TransformOpt":
        """Read a step from JSON such as ``{"uses": "...", "with": {...}}``."""
        data: Any = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"invalid type: {data!r}, expected struct TransformOpt")
        for key in ("uses", "with"):
            if key not in data:
                raise ValueError(f"missing field `{key}`")
        uses, params = data["uses"], data["with"]
        if not isinstance(uses, str):
            raise ValueError(f"invalid type for `uses`: {uses!r}, expected a string")
        if not isinstance(params, dict):
            raise ValueError(f"invalid type for `with`: {params!r}, expected a map")
        for key, value in params.items():
            if not isinstance(value, str):
                raise ValueError(f"invalid type for `{key}`: {value!r}, expected a string")
        return cls(uses=uses, with_=dict(sorted(params.items())))


@dataclass
class CommonConsumerOpt:
    consumer_partition: int = 0


@dataclass
class CommonProducerOpt:
    producer_linger: timedelta | None = None
    producer_compression: Compression | None = None
    producer_batch_size: int | None = None


def _partition(text: str) -> int:
    value = int(text)
    if not 0 <= value < 2**32:
        raise ValueError(f"partition out of range: {value}")
    return value


def _duration(text: str) -> timedelta:
    return parse_duration(text)


def _compression(text: str) -> Compression:
    return Compression.parse(text)


def _byte_size(text: str) -> int:
    return parse_byte_size(text)


def _transform(text: str) -> TransformOpt:
    try:
        return TransformOpt.from_json(text)
    except json.JSONDecodeError as exc:
        raise ValueError(str(exc)) from None


def add_common_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Add the options every connector accepts to ``parser``."""
    parser.add_argument(
        "--fluvio-topic", required=True,
        help="The topic where this connector sends or receives records")
    parser.add_argument(
        "--rust-log", default=None,
        help="The log level. If unset, RUST_LOG is used, else INFO")
    parser.add_argument("--consumer-partition", type=_partition, default=0)
    parser.add_argument(
        "--producer-linger", type=_duration, default=None,
        help="Time to wait before sending. Ex: '150ms', '20s'")
    parser.add_argument(
        "--producer-compression", type=_compression, default=None,
        help="Compression algorithm: none, gzip, snappy or lz4")
    parser.add_argument(
        "--producer-batch-size", type=_byte_size, default=None,
        help="Max amount of bytes accumulated before sending")
    parser.add_argument("--transform", type=_transform, action="append", default=None)
    return parser


def _apply_log_directives(spec: str) -> None:
    root = logging.getLogger()
    for directive in filter(None, (part.strip() for part in spec.split(","))):
        target, sep, level_name = directive.rpartition("=")
        level = _LOG_LEVELS.get(level_name.lower())
        if level is None:
            continue
        if sep and target:
            logging.getLogger(target).setLevel(level)
        else:
            root.setLevel(level)


@dataclass
class CommonConnectorOpt:
    """Options common to every connector."""

    fluvio_topic: str = ""
    rust_log: str | None = None
    consumer_common: CommonConsumerOpt = field(default_factory=CommonConsumerOpt)
    producer_common: CommonProducerOpt = field(default_factory=CommonProducerOpt)
    transforms: list[TransformOpt] = field(default_factory=list)

    @classmethod
    def from_namespace(cls, namespace: argparse.Namespace) -> "CommonConnectorOpt":
        return cls(
            fluvio_topic=namespace.fluvio_topic,
            rust_log=namespace.rust_log,
            consumer_common=CommonConsumerOpt(namespace.consumer_partition),
            producer_common=CommonProducerOpt(
                producer_linger=namespace.producer_linger,
                producer_compression=namespace.producer_compression,
                producer_batch_size=namespace.producer_batch_size,
            ),
            transforms=list(namespace.transform or []),
        )

    def enable_logging(self) -> None:
        """Settle RUST_LOG (option, then environment, then ``info``) and apply it."""
        if "RUST_LOG" not in os.environ:
            os.environ["RUST_LOG"] = "info"
        if self.rust_log is not None:
            os.environ["RUST_LOG"] = self.rust_log
        root = logging.getLogger()
        if not root.handlers:
            logging.basicConfig()
        _apply_log_directives(os.environ["RUST_LOG"])


def connector_metadata(name: str, version: str, description: str, schema: Any,
                       direction: str | None = None) -> dict[str, Any]:
    """The metadata document a connector prints when run as ``metadata``."""
    metadata: dict[str, Any] = {"name": name, "version": version, "description": description}
    if direction is not None:
        metadata["direction"] = direction
    metadata["schema"] = schema
    return metadata


@lru_cache(maxsize=1)
def _git_head() -> str:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"], capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError):
        return "unknown"
    return result.stdout.strip()


def git_hash_version() -> str:
    """The git commit this code runs from; ``GIT_HASH`` overrides it."""
    override = os.environ.get("GIT_HASH")
    if override:
        return override.strip()
    return _git_head()
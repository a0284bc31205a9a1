"""Sink options and client configuration for forwarding records to Kafka."""

from __future__ import annotations

import enum
import logging
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field

from flowsinks.options import CommonConnectorOpt

logger = logging.getLogger(__name__)


class SecurityProtocol(enum.Enum):
    """Kafka security protocols the sink supports."""

    SSL = "SSL"

    @classmethod
    def parse(cls, text: str) -> "SecurityProtocol":
        if text.lower() == "ssl":
            return cls.SSL
        raise ValueError("Invalid option. SSL is the only supported security protocol")

    def __str__(self) -> str:
        return self.value


@dataclass
class SecurityOpt:
    """TLS material, either as file paths or as PEM text; PEM text wins."""

    ssl_key_file: str | None = None
    ssl_key_pem: str | None = None
    ssl_cert_file: str | None = None
    ssl_cert_pem: str | None = None
    ssl_ca_file: str | None = None
    ssl_ca_pem: str | None = None
    security_protocol: SecurityProtocol | None = None


@dataclass
class KafkaOpt:
    """Options of the Kafka sink."""

    kafka_url: str
    kafka_topic: str | None = None
    kafka_partition: int | None = None
    kafka_option: list[str] = field(default_factory=list)
    create_kafka_topic: bool | None = None
    common: CommonConnectorOpt = field(default_factory=CommonConnectorOpt)
    security: SecurityOpt = field(default_factory=SecurityOpt)

    def resolved_topic(self) -> str:
        """The Kafka topic, falling back to the Fluvio topic."""
        if self.kafka_topic is not None:
            return self.kafka_topic
        return self.common.fluvio_topic


def parse_kafka_options(options: Iterable[str]) -> list[tuple[str, str]]:
    """Split ``key:value`` options; text after a second colon is dropped."""
    pairs = []
    for option in options:
        parts = option.split(":")
        if len(parts) < 2:
            raise ValueError(f"kafka option {option!r} is not of the form key:value")
        pairs.append((parts[0], parts[1]))
    logger.info("kafka_options: %r", pairs)
    return pairs


def _read_text(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError):
        return None


def _pem_or_file(pem: str | None, path: str | None) -> str | None:
    if pem is not None:
        return pem
    if path is not None:
        return _read_text(path)
    return None


def _write_ca(pem: str) -> str:
    with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8") as handle:
        handle.write(pem)
        return handle.name


def build_client_config(opt: KafkaOpt) -> dict[str, str]:
    """The Kafka client configuration for the sink's producer."""
    config = dict(parse_kafka_options(opt.kafka_option))
    config["bootstrap.servers"] = opt.kafka_url
    security = opt.security
    if security.security_protocol is not None:
        config["security.protocol"] = str(security.security_protocol)

    key = _pem_or_file(security.ssl_key_pem, security.ssl_key_file)
    if key is not None:
        config["ssl.key.pem"] = key
    cert = _pem_or_file(security.ssl_cert_pem, security.ssl_cert_file)
    if cert is not None:
        config["ssl.certificate.pem"] = cert

    if security.ssl_ca_pem is not None:
        config["ssl.ca.location"] = _write_ca(security.ssl_ca_pem)
    elif security.ssl_ca_file is not None:
        config["ssl.ca.location"] = security.ssl_ca_file
    return config
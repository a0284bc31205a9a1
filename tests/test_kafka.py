from pathlib import Path

import pytest

from flowsinks.kafka import (
    KafkaOpt,
    SecurityOpt,
    SecurityProtocol,
    build_client_config,
    parse_kafka_options,
)
from flowsinks.options import CommonConnectorOpt


@pytest.mark.parametrize("text", ["ssl", "SSL", "Ssl"])
def test_security_protocol_parse(text):
    assert SecurityProtocol.parse(text) is SecurityProtocol.SSL


def test_security_protocol_text():
    assert str(SecurityProtocol.parse("ssl")) == "SSL"


def test_security_protocol_rejects_other():
    with pytest.raises(ValueError, match="SSL is the only supported"):
        SecurityProtocol.parse("sasl_ssl")


def test_parse_kafka_options():
    assert parse_kafka_options(["acks:all", "x:y:z"]) == [("acks", "all"), ("x", "y")]


def test_parse_kafka_options_requires_colon():
    with pytest.raises(ValueError):
        parse_kafka_options(["nocolon"])


def test_resolved_topic_falls_back():
    opt = KafkaOpt(kafka_url="localhost:9092",
                   common=CommonConnectorOpt(fluvio_topic="fluvio-topic"))
    assert opt.resolved_topic() == "fluvio-topic"
    opt.kafka_topic = "kafka-topic"
    assert opt.resolved_topic() == "kafka-topic"


def test_basic_client_config():
    opt = KafkaOpt(kafka_url="localhost:9092", kafka_option=["acks:all"])
    assert build_client_config(opt) == {"acks": "all", "bootstrap.servers": "localhost:9092"}


def test_security_protocol_in_config():
    opt = KafkaOpt(kafka_url="localhost:9092",
                   security=SecurityOpt(security_protocol=SecurityProtocol.SSL))
    assert build_client_config(opt)["security.protocol"] == "SSL"


def test_key_and_cert_from_files(tmp_path):
    key_file = tmp_path / "client.key"
    key_file.write_text("KEY DATA")
    cert_file = tmp_path / "client.crt"
    cert_file.write_text("CERT DATA")
    opt = KafkaOpt(kafka_url="localhost:9092", security=SecurityOpt(
        ssl_key_file=str(key_file), ssl_cert_file=str(cert_file)))
    config = build_client_config(opt)
    assert config["ssl.key.pem"] == "KEY DATA"
    assert config["ssl.certificate.pem"] == "CERT DATA"


def test_pem_text_wins_over_file(tmp_path):
    key_file = tmp_path / "client.key"
    key_file.write_text("FROM FILE")
    opt = KafkaOpt(kafka_url="localhost:9092", security=SecurityOpt(
        ssl_key_file=str(key_file), ssl_key_pem="FROM PEM"))
    assert build_client_config(opt)["ssl.key.pem"] == "FROM PEM"


def test_missing_key_file_is_ignored(tmp_path):
    opt = KafkaOpt(kafka_url="localhost:9092", security=SecurityOpt(
        ssl_key_file=str(tmp_path / "absent.key")))
    assert "ssl.key.pem" not in build_client_config(opt)


def test_ca_file_is_used_as_location():
    opt = KafkaOpt(kafka_url="localhost:9092",
                   security=SecurityOpt(ssl_ca_file="/etc/ca.pem"))
    assert build_client_config(opt)["ssl.ca.location"] == "/etc/ca.pem"


def test_ca_pem_is_written_to_file():
    opt = KafkaOpt(kafka_url="localhost:9092",
                   security=SecurityOpt(ssl_ca_file="/etc/ca.pem", ssl_ca_pem="CA DATA"))
    location = Path(build_client_config(opt)["ssl.ca.location"])
    try:
        assert location.read_text() == "CA DATA"
    finally:
        location.unlink()
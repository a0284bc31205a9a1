"""Sink that writes JSON records as items of a DynamoDB table."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from flowsinks.options import CommonConnectorOpt

logger = logging.getLogger(__name__)

READ_CAPACITY_UNITS = 10
WRITE_CAPACITY_UNITS = 5


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid number: {name}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number_text(value: int | float) -> str:
    """JSON text of a number, with exponents written as ``1e20`` / ``1e-5``."""
    if isinstance(value, int):
        return str(value)
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        return f"{mantissa}e{int(exponent)}"
    return text


def _json_text(value: Any) -> str:
    if _is_number(value):
        return _number_text(value)
    return json.dumps(value, ensure_ascii=False)


def to_attribute_value(value: Any) -> dict[str, Any]:
    """Convert a decoded JSON value into a DynamoDB attribute value."""
    if isinstance(value, str):
        return {"S": value}
    if isinstance(value, bool):
        return {"BOOL": value}
    if _is_number(value):
        return {"N": _number_text(value)}
    if value is None:
        return {"NULL": True}
    if isinstance(value, list):
        if all(isinstance(item, str) for item in value):
            return {"SS": [_json_text(item) for item in value]}
        if all(_is_number(item) for item in value):
            return {"NS": [_json_text(item) for item in value]}
        return {"L": [to_attribute_value(item) for item in value]}
    if isinstance(value, dict):
        return {"M": {key: to_attribute_value(item) for key, item in value.items()}}
    raise TypeError(f"not a JSON value: {type(value).__name__}")


@dataclass
class DynamoDbOpt:
    """Options of the DynamoDB sink; columns are comma separated."""

    table_name: str
    column_names: str
    column_types: str
    aws_endpoint: str | None = None
    common: CommonConnectorOpt = field(default_factory=CommonConnectorOpt)

    def put_item_request(self, record_value: bytes | str) -> dict[str, Any]:
        """The PutItem request for a JSON record; absent columns are left out."""
        document = json.loads(record_value, parse_constant=_reject_constant)
        item: dict[str, Any] = {}
        for column in self.column_names.split(","):
            if isinstance(document, dict) and column in document:
                item[column] = to_attribute_value(document[column])
        request = {"TableName": self.table_name, "Item": item}
        logger.info("dynamodb request %r", request)
        return request

    def create_table_request(self) -> dict[str, Any]:
        """The CreateTable request; the first column is the hash key."""
        names = self.column_names.split(",")
        types = self.column_types.split(",")
        if not names:
            raise ValueError("Must have one ore more columns")
        if len(names) != len(types):
            raise ValueError("Must have the same number of column names as column types")
        primary_key = names[0]
        return {
            "TableName": self.table_name,
            "KeySchema": [{"AttributeName": primary_key, "KeyType": "HASH"}],
            "ProvisionedThroughput": {
                "ReadCapacityUnits": READ_CAPACITY_UNITS,
                "WriteCapacityUnits": WRITE_CAPACITY_UNITS,
            },
            "AttributeDefinitions": [
                {"AttributeName": primary_key, "AttributeType": types[0]},
            ],
        }
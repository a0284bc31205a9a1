import json

import pytest

from flowsinks.postgres_model import (
    DeleteBody,
    InsertBody,
    ReplicaIdentity,
    ReplicationEvent,
    TupleData,
    message_to_dict,
    parse_message,
)

RELATION = {
    "type": "relation",
    "rel_id": 16384,
    "namespace": "public",
    "name": "names",
    "replica_identity": "Default",
    "columns": [
        {"flags": 1, "name": "id", "type_id": 23, "type_modifier": -1},
        {"flags": 0, "name": "name", "type_id": 25, "type_modifier": -1},
    ],
}

TUPLE = [
    {"Int4": 1},
    {"String": "Fluvio_1"},
    "Null",
    "UnchangedToast",
    {"Bool": True},
    {"RawText": [1, 2, 3]},
    {"Float8": 2.5},
    {"Float4": 0.5},
    {"Oid": 7},
    {"Int8": -9},
    {"Int2": 3},
    {"Char": -1},
]

MESSAGES = [
    {"type": "begin", "final_lsn": 10, "timestamp": 20, "xid": 30},
    {"type": "commit", "flags": 0, "commit_lsn": 10, "end_lsn": 11, "timestamp": 20},
    {"type": "origin", "commit_lsn": 5, "name": "upstream"},
    RELATION,
    {"type": "type", "id": 600, "namespace": "public", "name": "mood"},
    {"type": "insert", "rel_id": 16384, "tuple": TUPLE},
    {"type": "update", "rel_id": 16384, "old_tuple": None,
     "key_tuple": [{"Int4": 1}], "new_tuple": TUPLE},
    {"type": "delete", "rel_id": 16384, "old_tuple": TUPLE, "key_tuple": None},
    {"type": "truncate", "options": 1, "rel_ids": [16384, 16385]},
]


def _event(message):
    return {"wal_start": 100, "wal_end": 200, "timestamp": 123456, "message": message}


@pytest.mark.parametrize("message", MESSAGES, ids=[m["type"] for m in MESSAGES])
def test_event_round_trip(message):
    event = ReplicationEvent.from_json(json.dumps(_event(message)))
    assert json.loads(event.to_json()) == _event(message)


def test_event_from_bytes():
    event = ReplicationEvent.from_json(json.dumps(_event(RELATION)).encode())
    assert event.wal_start == 100
    assert event.wal_end == 200
    assert event.message.replica_identity is ReplicaIdentity.DEFAULT
    assert [c.name for c in event.message.columns] == ["id", "name"]
    assert event.message.columns[0].flags == 1


def test_message_tag_comes_first():
    event = ReplicationEvent.from_json(_event(MESSAGES[5]))
    message = json.loads(event.to_json())["message"]
    assert next(iter(message)) == "type"
    assert message["type"] == "insert"


def test_parse_message_round_trip():
    assert message_to_dict(parse_message(RELATION)) == RELATION


def test_missing_optional_tuples_are_none():
    message = parse_message({"type": "delete", "rel_id": 3, "key_tuple": [{"Int4": 1}]})
    assert isinstance(message, DeleteBody)
    assert message.old_tuple is None
    assert message.key_tuple == [TupleData("Int4", 1)]


def test_insert_tuple_values():
    message = parse_message({"type": "insert", "rel_id": 1, "tuple": TUPLE})
    assert isinstance(message, InsertBody)
    assert message.tuple[2] == TupleData("Null")
    assert message.tuple[5].value == bytes([1, 2, 3])


def test_unknown_message_type():
    with pytest.raises(ValueError, match="unknown variant"):
        parse_message({"type": "message", "rel_id": 1})


def test_missing_field():
    with pytest.raises(ValueError, match="rel_id"):
        parse_message({"type": "insert", "tuple": []})


def test_out_of_range_field():
    with pytest.raises(ValueError):
        parse_message({"type": "begin", "final_lsn": 1, "timestamp": 1, "xid": -1})


def test_unknown_replica_identity():
    with pytest.raises(ValueError, match="unknown variant"):
        parse_message({**RELATION, "replica_identity": "Partial"})


def test_unknown_tuple_kind():
    with pytest.raises(ValueError):
        parse_message({"type": "insert", "rel_id": 1, "tuple": [{"Blob": 1}]})


def test_missing_event_field():
    with pytest.raises(ValueError, match="wal_end"):
        ReplicationEvent.from_json({"wal_start": 1, "timestamp": 1, "message": RELATION})


def test_message_to_dict_rejects_other_objects():
    with pytest.raises(TypeError):
        message_to_dict(object())


def test_tuple_value_range_checked():
    with pytest.raises(ValueError):
        TupleData("Int2", 40000)


@pytest.mark.parametrize("kind", ["Char", "Int2", "Int4", "Int8", "Oid"])
def test_integer_to_sql(kind):
    assert int(TupleData(kind, 42).to_sql()) == 42


def test_bool_to_sql():
    assert TupleData("Bool", False).to_sql() == "false"


def test_string_to_sql_is_quoted():
    assert TupleData("String", "Fluvio_1").to_sql() == "'Fluvio_1'"


def test_float8_to_sql():
    assert float(TupleData("Float8", 2.5).to_sql()) == 2.5
    whole = TupleData("Float8", 3.0).to_sql()
    assert "." not in whole and float(whole) == 3.0
    large = TupleData("Float8", 1e20).to_sql()
    assert "e" not in large and float(large) == 1e20


def test_float4_to_sql_uses_shortest_text():
    text = TupleData("Float4", 0.1).to_sql()
    assert float(text) == 0.1


@pytest.mark.parametrize("data", [TupleData("Null"), TupleData("UnchangedToast"),
                                  TupleData("RawText", b"ab")])
def test_unsupported_to_sql(data):
    with pytest.raises(ValueError, match="Unsupported tupple type"):
        data.to_sql()
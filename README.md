# flowsinks

Building blocks for connectors that move records from a streaming topic
into external systems: connector configuration files, the command-line
options every connector shares, data models for Postgres logical
replication and SQL insert operations, and the logic behind the
Postgres, DynamoDB, Kafka and Slack sinks.

## Connector configuration

A connector is described by a YAML file:

```yaml
name: my-test-mqtt
type: mqtt
topic: my-mqtt
version: 0.1.0
parameters:
  param_1: mqtt.hsl.fi
  param_2:
    - "foo:baz"
    - bar
secrets:
  foo: bar
producer:
  linger: 1ms
  compression: gzip
  batch-size: 44.0 MB
consumer:
  partition: 10
```

```python
from flowsinks.config import ConnectorConfig, ConnectorLoadError

try:
    config = ConnectorConfig.from_file("connector.yaml")
except ConnectorLoadError as exc:
    print(f"bad configuration: {exc}")
else:
    print(config.producer_parameters())
    # ['--producer-linger', '1ms', '--producer-compression', 'gzip',
    #  '--producer-batch-size', '44.0 MB']
    print(config.consumer_parameters())
    # ['--consumer-partition', '10']
```

`ConnectorConfig.from_yaml` and `ConnectorConfig.from_dict` load the same
structure from text or an already decoded mapping, and `to_dict` turns a
configuration back into plain data. `ConnectorLoadError` carries a `kind`
(`yaml`, `io` or `byte_size`) and a `detail` message.

Parameter values are normalised by `parse_parameter_value` to strings,
lists of strings or maps of strings, whatever YAML scalar type they were
written as (`10.0` stays `"10.0"`, `0xf1` becomes `"241"`, `null` becomes
`"null"`). Secrets are held in `SecretString`, which prints as
`[REDACTED]`; call `expose()` to get the real value.

`parse_duration` and `parse_byte_size` accept the human-readable forms
used in the `producer` section (`150ms`, `20s`, `44.0 MB`), and
`Compression.parse` accepts `none`, `gzip`, `snappy` and `lz4`.

## Common connector options

`flowsinks.options` provides the options every connector accepts
(`--fluvio-topic`, `--rust-log`, `--consumer-partition`,
`--producer-linger`, `--producer-compression`, `--producer-batch-size`,
`--transform`):

```python
import argparse
from flowsinks.options import add_common_arguments, CommonConnectorOpt

parser = argparse.ArgumentParser()
add_common_arguments(parser)
opt = CommonConnectorOpt.from_namespace(parser.parse_args(["--fluvio-topic", "events"]))
opt.enable_logging()
```

`--transform` takes JSON such as `{"uses": "infinyon/sql", "with": {...}}`
and may be repeated; each is read by `TransformOpt.from_json`.
`enable_logging` settles the `RUST_LOG` environment variable (the option
first, then the existing variable, then `info`) and applies its levels to
Python logging.

`connector_metadata` builds the metadata document a connector prints
when asked for its description and schema, and `git_hash_version`
reports the commit the code runs from (`GIT_HASH` overrides it).

## Metrics

`flowsinks.monitoring.init_monitoring` starts a background thread that
serves the pretty JSON form of a `ConnectorMetrics` object to every
client that connects to a Unix socket. The path comes from the
`FLUVIO_METRIC_CONNECTOR` environment variable, or
`/tmp/fluvio-connector.sock` when it is unset (see `metric_socket_path`).
An existing file at that path is removed first.

## Postgres replication

`flowsinks.postgres_model` describes the events of a Postgres logical
replication stream (`ReplicationEvent` with `BeginBody`, `CommitBody`,
`RelationBody`, `InsertBody`, `UpdateBody`, `DeleteBody`,
`TruncateBody` and the rest), and `flowsinks.postgres_sink` turns them
into SQL:

```python
from flowsinks.postgres_model import ReplicationEvent
from flowsinks.postgres_sink import ReplicationApplier

applier = ReplicationApplier()
event = ReplicationEvent.from_json(raw_bytes)
statements = applier.apply(offset, event)
# e.g. ['INSERT INTO public.names (id,name) VALUES (1,\'Ada\')',
#       'UPDATE fluvio.offset SET current_offset=7 where id = 1']
```

`ReplicationApplier.learn` records the schema of events that were already
applied. `to_table_create`, `to_table_alter`, `to_table_insert`,
`to_update`, `to_delete` and `to_table_truncate` build individual
statements, and `postgres_type_name` maps type OIDs to names.
`parse_pg_sink_args` reads the sink's command line (`--url`, defaulting
to `FLUVIO_PG_DATABASE_URL`, plus the common options) into
`PgSinkOptions`.

## SQL operations

`flowsinks.sql_model.parse_operation` reads JSON insert operations
(`{"Insert": {"table": ..., "values": [...]}}`) into `InsertOperation`
objects with typed `Value` entries (`SqlType`).

## Other sinks

* `flowsinks.slack.SlackSink` posts each record's text to a webhook with
  `requests`; `run` sends a stream of record values and skips those that
  fail.
* `flowsinks.dynamodb.DynamoDbOpt` builds DynamoDB `PutItem` and
  `CreateTable` request dictionaries from JSON records;
  `to_attribute_value` maps JSON values to DynamoDB attribute values.
* `flowsinks.kafka` parses Kafka options (`key:value` pairs) with
  `parse_kafka_options`, holds the SSL settings in `SecurityOpt`, and
  assembles the client configuration with `build_client_config`.

## What this package does not do

There is no command to run a connector, and nothing here connects to a
streaming cluster to consume or produce records. The Postgres sink
produces SQL statements but does not open a database connection or
execute them; the DynamoDB sink produces request dictionaries but does
not send them; the Kafka module produces a client configuration but no
producer. Wiring these pieces to live services is left to the caller.
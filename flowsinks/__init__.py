"""Connector configuration, shared options, replication models and sink logic."""

__version__ = "0.1.0"

__all__ = [
    "config",
    "postgres_model",
    "sql_model",
    "options",
    "monitoring",
    "slack",
    "postgres_sink",
    "dynamodb",
    "kafka",
]
"""Connector metrics, served as JSON over a Unix socket."""

from __future__ import annotations

import json
import logging
import os
import socket
import threading
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SOCKET_PATH = "/tmp/fluvio-connector.sock"


@dataclass
class ConnectorMetrics:
    """Metrics of a connector; the client's metrics appear at the top level."""

    client: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> bytes:
        """Pretty JSON of the metrics."""
        return json.dumps(self.client, indent=2).encode()


def metric_socket_path() -> str:
    """The socket path from ``FLUVIO_METRIC_CONNECTOR``, or the default one."""
    path = os.environ.get("FLUVIO_METRIC_CONNECTOR")
    if path is None:
        logger.info("using default metric path: %s", SOCKET_PATH)
        return SOCKET_PATH
    logger.info("using metric path: %s", path)
    return path


def start_monitoring(metrics: ConnectorMetrics) -> None:
    """Serve the metrics to every client that connects; runs until an error occurs."""
    path = metric_socket_path()
    if os.path.lexists(path):
        logger.info("metric file already exists, deleting: %s", path)
        os.remove(path)

    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as server:
        server.bind(path)
        server.listen()
        logger.info("monitoring started")
        while True:
            conn, _ = server.accept()
            with conn:
                logger.debug("metrics: %r", metrics)
                conn.sendall(metrics.to_json())


def _run(metrics: ConnectorMetrics) -> None:
    try:
        start_monitoring(metrics)
    except OSError as exc:
        logger.error("error running monitoring: %s", exc)


def init_monitoring(metrics: ConnectorMetrics) -> threading.Thread:
    """Start serving metrics in a background thread and return that thread."""
    thread = threading.Thread(target=_run, args=(metrics,), name="monitoring", daemon=True)
    thread.start()
    return thread
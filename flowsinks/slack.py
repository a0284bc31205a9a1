"""Sink that posts each record to a Slack incoming webhook."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import requests

logger = logging.getLogger(__name__)


def slack_payload(value: bytes) -> dict[str, str]:
    """The webhook body for a record: its value as text, invalid UTF-8 replaced."""
    return {"text": value.decode("utf-8", errors="replace")}


class SlackSink:
    """Posts record values to a webhook URL."""

    def __init__(self, webhook_url: str, session: Any = None) -> None:
        self.webhook_url = webhook_url
        self.session = session if session is not None else requests.Session()

    def send(self, value: bytes) -> Any:
        """Post one record value; transport errors propagate."""
        payload = slack_payload(value)
        logger.debug("Sending %r, to slack", payload["text"])
        return self.session.post(self.webhook_url, json=payload)

    def run(self, records: Iterable[bytes]) -> int:
        """Send every record, skipping those that fail; return how many were sent."""
        logger.info("Starting stream")
        sent = 0
        for value in records:
            try:
                self.send(value)
            except requests.RequestException as exc:
                logger.debug("failed to send record to slack: %s", exc)
                continue
            sent += 1
        return sent
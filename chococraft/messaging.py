from __future__ import annotations

import datetime as dt
import json
import logging

import pika

from . import config

logger = logging.getLogger(__name__)


def _connect() -> pika.BlockingConnection:
    params = pika.URLParameters(config.RABBITMQ_URL)
    params.heartbeat = 30
    params.blocked_connection_timeout = 30
    params.socket_timeout = 5
    return pika.BlockingConnection(params)


def publish_event(routing_key: str, payload: dict) -> None:
    """Publish ``payload`` on the events exchange under ``routing_key``.

    Does nothing unless EVENTS_ENABLED is set.
    """
    if not config.EVENTS_ENABLED:
        return

    body = {
        "event": routing_key,
        "occurred_at": dt.datetime.now(dt.timezone.utc).isoformat().replace("+00:00", "Z"),
        **payload,
    }
    connection = _connect()
    try:
        ch = connection.channel()
        ch.exchange_declare(exchange=config.EVENTS_EXCHANGE, exchange_type="topic", durable=True)
        ch.basic_publish(
            exchange=config.EVENTS_EXCHANGE,
            routing_key=routing_key,
            body=json.dumps(body, ensure_ascii=False, default=str).encode("utf-8"),
            properties=pika.BasicProperties(
                content_type="application/json",
                delivery_mode=2,  # persistent
            ),
        )
    finally:
        connection.close()


def publish_after_commit(routing_key: str, payload: dict) -> None:
    """Publish an event for a change that is already committed.

    The change stands whatever happens to the broker, so a failure is logged
    rather than raised.
    """
    try:
        publish_event(routing_key, payload)
    except Exception:
        logger.exception("Failed to publish %s event", routing_key)

import json
from unittest.mock import MagicMock

from chococraft import config, messaging


def test_publish_is_noop_when_disabled(monkeypatch):
    connect = MagicMock()
    monkeypatch.setattr(config, "EVENTS_ENABLED", False)
    monkeypatch.setattr(messaging, "_connect", connect)

    messaging.publish_event("order.created", {"order_id": 1})

    connect.assert_not_called()


def test_publish_sends_persistent_json(monkeypatch):
    connection = MagicMock()
    channel = connection.channel.return_value
    monkeypatch.setattr(config, "EVENTS_ENABLED", True)
    monkeypatch.setattr(messaging, "_connect", lambda: connection)

    messaging.publish_event("order.created", {"order_id": 7, "total": "200.00"})

    channel.exchange_declare.assert_called_once_with(
        exchange=config.EVENTS_EXCHANGE, exchange_type="topic", durable=True
    )
    kwargs = channel.basic_publish.call_args.kwargs
    assert kwargs["routing_key"] == "order.created"
    body = json.loads(kwargs["body"].decode("utf-8"))
    assert body["event"] == "order.created"
    assert body["order_id"] == 7
    assert body["occurred_at"].endswith("Z")
    assert kwargs["properties"].delivery_mode == 2
    connection.close.assert_called_once()


def test_publish_after_commit_logs_broker_failures(monkeypatch, caplog):
    def boom(routing_key, payload):
        raise ConnectionError("broker down")

    monkeypatch.setattr(messaging, "publish_event", boom)

    messaging.publish_after_commit("stock.low", {"product_id": 3})

    assert "Failed to publish stock.low event" in caplog.text

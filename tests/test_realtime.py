"""Tests for room events and websocket frame parsing."""

import pytest

from productbazar.realtime.pubsub import publish_event, set_redis
from productbazar.realtime.websocket import parse_client_message


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('{"type": "ping"}', ("ping", None)),
        ('{"type": "subscribe:product", "product_id": 7}', ("subscribe", "product:7")),
        ('{"type": "subscribe:product", "product_id": "12"}', ("subscribe", "product:12")),
        ('{"type": "unsubscribe:product", "product_id": 7}', ("unsubscribe", "product:7")),
        ('{"type": "subscribe:product", "product_id": "abc"}', ("ignore", None)),
        ('{"type": "subscribe:product"}', ("ignore", None)),
        ('{"type": "dance"}', ("ignore", None)),
        ("[1, 2]", ("ignore", None)),
        ("not json", ("ignore", None)),
    ],
)
def test_parse_client_message(raw, expected):
    assert parse_client_message(raw) == expected


async def test_publish_event_goes_to_room_channel(fake_redis):
    assert await publish_event("product:3", "product:view:update", {"count": 4}) is True
    channel, payload = fake_redis.published[0]
    assert channel == "productbazar:room:product:3"
    assert payload == {"event": "product:view:update", "room": "product:3", "data": {"count": 4}}


async def test_publish_event_without_redis():
    set_redis(None)
    assert await publish_event("user:1", "product:view:update", {}) is False

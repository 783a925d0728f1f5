"""Tests for the event channel."""

import logging

from warfire import EventChannel, EventType


def test_typed_and_global_listeners():
    channel = EventChannel()
    typed, every = [], []
    channel.subscribe(EventType.UNIT_MOVED, typed.append)
    channel.subscribe_all(every.append)

    channel.emit(EventType.UNIT_MOVED, unit_id="unit_1")
    channel.emit(EventType.MESSAGE, text="hi")

    assert [e.data for e in typed] == [{"unit_id": "unit_1"}]
    assert [e.type for e in every] == [EventType.UNIT_MOVED, EventType.MESSAGE]


def test_unsubscribe():
    channel = EventChannel()
    seen = []
    channel.subscribe(EventType.MESSAGE, seen.append)
    channel.unsubscribe(EventType.MESSAGE, seen.append)
    channel.unsubscribe(EventType.GAME_OVER, seen.append)
    channel.emit(EventType.MESSAGE, text="x")
    assert seen == []


def test_listener_error_is_logged_not_raised(caplog):
    channel = EventChannel(record=True)
    after = []

    def broken(event):
        raise ValueError("listener bug")

    channel.subscribe(EventType.GAME_OVER, broken)
    channel.subscribe(EventType.GAME_OVER, after.append)

    with caplog.at_level(logging.ERROR, logger="warfire.events"):
        channel.emit(EventType.GAME_OVER, winner=1)

    assert len(after) == 1
    assert "listener error" in caplog.text
    assert len(channel.drain()) == 1


def test_event_serializes_with_wire_name():
    event = EventChannel().emit(EventType.CITY_CAPTURED, city_id="city_1", new_owner=0)
    assert event.to_dict() == {"event": "city:captured", "city_id": "city_1", "new_owner": 0}


def test_drain_empties_the_record():
    channel = EventChannel(record=True)
    channel.emit(EventType.MESSAGE, text="a")
    channel.emit(EventType.MESSAGE, text="b")
    assert [e.data["text"] for e in channel.drain()] == ["a", "b"]
    assert channel.drain() == []


def test_record_is_bounded():
    channel = EventChannel(record=True, max_records=3)
    for i in range(5):
        channel.emit(EventType.MESSAGE, text=str(i))
    assert [e.data["text"] for e in channel.drain()] == ["2", "3", "4"]


def test_drain_without_recording():
    channel = EventChannel()
    channel.emit(EventType.MESSAGE, text="a")
    assert channel.drain() == []

"""
测试 pms_core.engine.event_bus 事件总线
"""
import threading
from pms_core.engine import Event, EventBus


def test_event_defaults():
    event = Event(event_type="data.changed", data={"category": "rooms"})
    assert event.source == ""
    assert event.event_id
    assert event.timestamp is not None


def test_instances_are_independent():
    bus1, bus2 = EventBus(), EventBus()
    received = []
    bus1.subscribe("test", received.append)
    bus2.publish(Event(event_type="test", data={}))
    assert received == []


def test_subscribe_and_publish():
    bus = EventBus()
    received = []
    bus.subscribe("test", received.append)
    event = Event(event_type="test", data={"msg": "hello"})
    result = bus.publish(event)

    assert received == [event]
    assert result.subscriber_count == 1
    assert result.success_count == 1
    assert result.failure_count == 0


def test_subscribe_same_handler_once():
    bus = EventBus()
    received = []
    bus.subscribe("test", received.append)
    handler = received.append
    bus.subscribe("test", handler)
    assert bus.subscriber_count("test") == 1


def test_unsubscribe():
    bus = EventBus()
    received = []

    def handler(event):
        received.append(event)

    bus.subscribe("test", handler)
    bus.unsubscribe("test", handler)
    bus.publish(Event(event_type="test", data={}))
    assert received == []


def test_handler_errors_are_isolated():
    bus = EventBus()
    received = []

    def failing(event):
        raise RuntimeError("handler failed")

    bus.subscribe("test", failing)
    bus.subscribe("test", received.append)
    result = bus.publish(Event(event_type="test", data={}))

    assert len(received) == 1
    assert result.failure_count == 1
    assert result.success_count == 1
    assert isinstance(result.errors[0][1], RuntimeError)


def test_history_newest_first():
    bus = EventBus(history_size=3)
    for i in range(5):
        bus.publish(Event(event_type="tick", data={"i": i}))
    history = bus.get_history()
    assert [e.data["i"] for e in history] == [4, 3, 2]
    assert bus.get_history("other") == []


def test_publish_from_threads():
    bus = EventBus()
    received = []
    lock = threading.Lock()

    def handler(event):
        with lock:
            received.append(event.data["n"])

    bus.subscribe("test", handler)
    threads = [
        threading.Thread(target=bus.publish, args=(Event(event_type="test", data={"n": n}),))
        for n in range(20)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(received) == list(range(20))


def test_clear():
    bus = EventBus()
    bus.subscribe("test", lambda e: None)
    bus.publish(Event(event_type="test", data={}))
    bus.clear()
    assert bus.subscriber_count("test") == 0
    assert bus.get_history() == []

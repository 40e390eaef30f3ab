"""Tests for change events and the in-memory notifier."""

import asyncio
import threading

import pytest

from frame_tracker.realtime.events import ChangeEvent, ChangeEventType
from frame_tracker.realtime.notifier import (
    ChangeChannel,
    InMemoryChannel,
    QueueSubscriber,
    safe_broadcast,
)
from frame_tracker.realtime.routes import _pump, _stop_pump


def _event(*order_ids, event_type=ChangeEventType.ORDER_STATUS_CHANGED):
    return ChangeEvent.for_orders(event_type, order_ids or ("order-1",), "FRAME_CUT")


class TestChangeEvent:
    def test_to_dict_carries_ids_not_order_state(self):
        data = _event("a", "b").to_dict()
        assert data["type"] == "order.status_changed"
        assert data["order_ids"] == ["a", "b"]
        assert data["new_status"] == "FRAME_CUT"
        assert set(data) == {"id", "type", "order_ids", "new_status", "created_at"}

    def test_from_dict_restores_event(self):
        event = _event("a")
        assert ChangeEvent.from_dict(event.to_dict()) == event


class TestInMemoryChannel:
    def test_fan_out_to_every_subscriber(self):
        channel = InMemoryChannel()
        first, second = [], []
        channel.subscribe(first.append)
        channel.subscribe(second.append)

        event = _event()
        assert channel.broadcast(event) == 2
        assert first == [event]
        assert second == [event]

    def test_closed_subscription_stops_delivery(self):
        channel = InMemoryChannel()
        received = []
        with channel.subscribe(received.append):
            channel.broadcast(_event("a"))
        channel.broadcast(_event("b"))

        assert [e.order_ids for e in received] == [("a",)]
        assert channel.subscriber_count == 0

    def test_no_replay_for_late_subscribers(self):
        channel = InMemoryChannel()
        channel.broadcast(_event())
        received = []
        channel.subscribe(received.append)
        assert received == []

    def test_failing_handler_is_skipped(self):
        channel = InMemoryChannel()
        received = []

        def broken(event):
            raise ConnectionError("client went away")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        assert channel.broadcast(_event()) == 1
        assert len(received) == 1

    def test_broadcast_without_subscribers(self):
        assert InMemoryChannel().broadcast(_event()) == 0


class TestSafeBroadcast:
    def test_none_notifier(self):
        assert safe_broadcast(None, _event()) == 0

    def test_channel_errors_are_contained(self):
        class ExplodingChannel(ChangeChannel):
            def broadcast(self, event):
                raise RuntimeError("broker down")

            def subscribe(self, handler):
                raise NotImplementedError

            def _unsubscribe(self, token):
                pass

            @property
            def subscriber_count(self):
                return 0

        assert safe_broadcast(ExplodingChannel(), _event()) == 0


class TestQueueSubscriber:
    @pytest.mark.asyncio
    async def test_same_loop_delivery(self):
        queue = asyncio.Queue()
        channel = InMemoryChannel()
        channel.subscribe(QueueSubscriber(queue))

        event = _event()
        channel.broadcast(event)
        assert await asyncio.wait_for(queue.get(), timeout=1) == event

    @pytest.mark.asyncio
    async def test_delivery_from_another_thread(self):
        queue = asyncio.Queue()
        channel = InMemoryChannel()
        channel.subscribe(QueueSubscriber(queue))

        event = _event("threaded")
        worker = threading.Thread(target=channel.broadcast, args=(event,))
        worker.start()
        worker.join()

        assert await asyncio.wait_for(queue.get(), timeout=1) == event

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self):
        queue = asyncio.Queue(maxsize=1)
        subscriber = QueueSubscriber(queue)
        channel = InMemoryChannel()
        channel.subscribe(subscriber)

        channel.broadcast(_event("a"))
        channel.broadcast(_event("b"))

        assert subscriber.dropped == 1
        assert queue.qsize() == 1
        assert (await queue.get()).order_ids == ("a",)


class FailingSocket:
    """Stands in for a websocket whose client went away mid-send."""

    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)
        raise RuntimeError("connection closed")


class IdleSocket:
    async def send_json(self, data):
        raise AssertionError("nothing should be sent")


class TestStopPump:
    @pytest.mark.asyncio
    async def test_cancelled_pump_is_awaited(self):
        pump = asyncio.create_task(_pump(IdleSocket(), asyncio.Queue()))
        await asyncio.sleep(0)

        await _stop_pump(pump)

        assert pump.done()
        assert pump.cancelled()

    @pytest.mark.asyncio
    async def test_send_failure_is_retrieved_not_raised(self):
        queue = asyncio.Queue()
        socket = FailingSocket()
        queue.put_nowait(_event("a"))
        pump = asyncio.create_task(_pump(socket, queue))
        await asyncio.wait_for(asyncio.wait({pump}), timeout=1)

        await _stop_pump(pump)

        assert pump.done()
        assert isinstance(pump.exception(), RuntimeError)
        assert len(socket.sent) == 1

"""
Event bus: delivery, isolation of failing handlers, target filtering, waits, history.
Run from backend: python -m pytest tests/test_event_bus.py -v
"""
import asyncio
import pytest


def test_emit_delivers_to_sync_and_async_handlers():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        seen = []

        def on_sync(event):
            seen.append(("sync", event.data["n"]))

        async def on_async(event):
            await asyncio.sleep(0)
            seen.append(("async", event.data["n"]))

        bus.subscribe("tick", on_sync)
        bus.subscribe("tick", on_async)
        event = await bus.emit("tick", {"n": 1}, source="test")
        return seen, event

    seen, event = asyncio.run(run())
    assert sorted(seen) == [("async", 1), ("sync", 1)]
    assert event.type == "tick"
    assert event.id.startswith("event_")


def test_failing_handler_does_not_block_others():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe("tick", broken)
        bus.subscribe("tick", lambda e: seen.append(e.data))
        await bus.emit("tick", {"ok": True})
        return seen

    assert asyncio.run(run()) == [{"ok": True}]


def test_target_filters_by_registered_source():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        seen = []
        bus.subscribe("ping", lambda e: seen.append("a"), source="agent-a")
        bus.subscribe("ping", lambda e: seen.append("b"), source="agent-b")
        await bus.emit("ping", {}, target="agent-b")
        return seen

    assert asyncio.run(run()) == ["b"]


def test_unsubscribe():
    from core.events import EventBus
    bus = EventBus()
    sub_id = bus.subscribe("tick", lambda e: None)
    assert bus.get_subscription_count("tick") == 1
    assert bus.unsubscribe(sub_id) is True
    assert bus.unsubscribe(sub_id) is False
    assert bus.get_subscription_count("tick") == 0


def test_wait_for_event_with_predicate():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        waiter = asyncio.create_task(
            bus.wait_for_event("done", timeout=1, predicate=lambda e: e.data.get("id") == 2)
        )
        await asyncio.sleep(0)
        await bus.emit("done", {"id": 1})
        await bus.emit("done", {"id": 2})
        event = await waiter
        return bus, event

    bus, event = asyncio.run(run())
    assert event.data["id"] == 2
    # temporary subscription removed
    assert bus.get_subscription_count("done") == 0


def test_wait_for_event_timeout_removes_subscription():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        with pytest.raises(TimeoutError, match="Timeout waiting for event: never"):
            await bus.wait_for_event("never", timeout=0.01)
        return bus

    bus = asyncio.run(run())
    assert bus.get_subscription_count("never") == 0


def test_request_response_correlates_request_id():
    from core.events import EventBus

    async def run():
        bus = EventBus()

        async def responder(event):
            # a stray response with another id must be ignored
            await bus.emit("pong", {"request_id": "other", "value": -1})
            await bus.emit("pong", {"request_id": event.data["request_id"], "value": event.data["value"] * 2})

        bus.subscribe("ping", responder)
        return await bus.request("ping", "pong", {"value": 21}, timeout=1)

    response = asyncio.run(run())
    assert response.data["value"] == 42
    assert response.data["request_id"].startswith("req_")


def test_request_timeout():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        with pytest.raises(TimeoutError):
            await bus.request("ping", "pong", {}, timeout=0.01)
        return bus

    bus = asyncio.run(run())
    assert bus.get_subscription_count("pong") == 0


def test_history_is_bounded_ring_buffer():
    from core.events import EventBus

    async def run():
        bus = EventBus(max_history_size=3)
        for i in range(5):
            await bus.emit("tick", {"i": i})
        await bus.emit("tock", {})
        return bus

    bus = asyncio.run(run())
    history = bus.get_event_history()
    assert len(history) == 3
    assert [e.data.get("i") for e in history] == [3, 4, None]
    assert [e.data["i"] for e in bus.get_event_history("tick")] == [3, 4]
    assert len(bus.get_event_history(limit=1)) == 1
    bus.clear_history()
    assert bus.get_event_history() == []


def test_stats():
    from core.events import EventBus

    async def run():
        bus = EventBus()
        bus.subscribe("a", lambda e: None)
        bus.subscribe("b", lambda e: None)
        await bus.emit("a", {})
        return bus.get_stats()

    stats = asyncio.run(run())
    assert stats["total_subscriptions"] == 2
    assert set(stats["event_types"]) == {"a", "b"}
    assert stats["history_size"] == 1
    assert stats["recent_event_types"] == ["a"]


def test_analysis_requested_payload_validation():
    from core.events import AnalysisRequested
    with pytest.raises(ValueError):
        AnalysisRequested.from_dict({"product_name": "x", "ingredients": "sugar, salt"})
    req = AnalysisRequested.from_dict({
        "product_name": "Bar", "ingredients": ["sugar"], "context": {"madhab": "Maliki"},
        "request_id": "req_1",
    })
    assert req.context.madhab.value == "Maliki"
    assert req.to_dict()["request_id"] == "req_1"

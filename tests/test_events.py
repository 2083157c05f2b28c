"""Unit tests for :mod:`lightpad.ui.events`."""

from __future__ import annotations

import gc
import logging

import pytest

from lightpad.ui.events import (
    ActiveTabChanged,
    CursorMoved,
    EventBus,
    StatusMessage,
    TabBarChanged,
    TabClosed,
)


class TestEventTypes:
    """Tests for the workspace event records."""

    def test_events_compare_by_value(self) -> None:
        assert TabClosed(tab_id="tab-1") == TabClosed(tab_id="tab-1", path=None)
        assert TabBarChanged(order=("tab-1",), active_tab_id="tab-1").unsaved == frozenset()

    def test_cursor_label(self) -> None:
        assert CursorMoved(line=3, column=14).label == "Ln 3, Col 14"
        assert CursorMoved(line=None, column=None).label == ""

    def test_status_message_defaults_to_sticky(self) -> None:
        assert StatusMessage(message="File loaded").timeout_ms == 0


class TestEventBusSubscription:
    """Tests for subscribe/unsubscribe bookkeeping."""

    def test_subscribe_same_handler_twice_delivers_twice(self) -> None:
        bus = EventBus()
        received: list[StatusMessage] = []

        bus.subscribe(StatusMessage, received.append)
        bus.subscribe(StatusMessage, received.append)
        bus.publish(StatusMessage(message="hi"))

        assert len(received) == 2

    def test_unsubscribe_removes_one_registration(self) -> None:
        bus = EventBus()
        received: list[StatusMessage] = []
        bus.subscribe(StatusMessage, received.append)
        bus.subscribe(StatusMessage, received.append)

        bus.unsubscribe(StatusMessage, received.append)
        bus.publish(StatusMessage(message="hi"))

        assert len(received) == 1
        assert bus.handler_count(StatusMessage) == 1

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus = EventBus()

        bus.unsubscribe(StatusMessage, print)
        bus.unsubscribe(TabClosed, print)

        assert bus.handler_count() == 0

    def test_clear_and_counts(self) -> None:
        bus = EventBus()
        bus.subscribe(StatusMessage, lambda event: None)
        bus.subscribe(TabClosed, lambda event: None)
        bus.subscribe(TabClosed, lambda event: None)

        assert bus.handler_count(TabClosed) == 2
        assert bus.handler_count() == 3

        bus.clear()
        assert bus.handler_count() == 0


class TestEventBusPublish:
    """Tests for delivery semantics."""

    def test_publish_matches_exact_type_in_order(self) -> None:
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(ActiveTabChanged, lambda event: calls.append(f"first:{event.tab_id}"))
        bus.subscribe(ActiveTabChanged, lambda event: calls.append(f"second:{event.tab_id}"))
        bus.subscribe(TabClosed, lambda event: calls.append("closed"))

        bus.publish(ActiveTabChanged(tab_id="tab-2"))

        assert calls == ["first:tab-2", "second:tab-2"]

    def test_publish_without_handlers_is_noop(self) -> None:
        EventBus().publish(StatusMessage(message="nobody listens"))

    def test_failing_handler_does_not_stop_delivery(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.ERROR, logger="lightpad.ui.events")
        bus = EventBus()
        received: list[TabClosed] = []

        def broken(event: TabClosed) -> None:
            raise RuntimeError("boom")

        bus.subscribe(TabClosed, broken)
        bus.subscribe(TabClosed, received.append)
        bus.publish(TabClosed(tab_id="tab-1"))

        assert received == [TabClosed(tab_id="tab-1")]
        assert "Handler broken raised exception for event TabClosed" in caplog.text


class TestEventBusWeakReferences:
    """Bound-method subscribers go away with their owner."""

    def test_dead_bound_method_is_pruned(self) -> None:
        bus = EventBus()
        received: list[TabClosed] = []

        class View:
            def on_closed(self, event: TabClosed) -> None:
                received.append(event)

        view = View()
        bus.subscribe(TabClosed, view.on_closed)
        bus.publish(TabClosed(tab_id="tab-1"))

        del view
        gc.collect()
        bus.publish(TabClosed(tab_id="tab-2"))

        assert [event.tab_id for event in received] == ["tab-1"]
        assert bus.handler_count(TabClosed) == 0

    def test_bound_method_can_unsubscribe(self) -> None:
        bus = EventBus()

        class View:
            def on_closed(self, event: TabClosed) -> None:
                pass

        view = View()
        bus.subscribe(TabClosed, view.on_closed)
        bus.unsubscribe(TabClosed, view.on_closed)

        assert bus.handler_count(TabClosed) == 0

"""
Tests for canispect.session.pubsub

Covers:
  - ordered delivery
  - idempotent unsubscribe, including from inside a listener
  - subscriptions and publishes made during delivery are deferred
  - a raising listener does not stop delivery
"""

from __future__ import annotations

import logging

import pytest

from canispect.session.pubsub import Channel


class TestDelivery:
    def test_listeners_called_in_subscription_order(self):
        channel: Channel[int] = Channel()
        seen: list[tuple[str, int]] = []
        channel.subscribe(lambda v: seen.append(("a", v)))
        channel.subscribe(lambda v: seen.append(("b", v)))

        channel.publish(1)

        assert seen == [("a", 1), ("b", 1)]

    def test_no_listeners_is_fine(self):
        Channel().publish("nothing")

    def test_len_counts_active_subscriptions(self):
        channel: Channel[int] = Channel()
        unsubscribe = channel.subscribe(lambda v: None)
        channel.subscribe(lambda v: None)
        assert len(channel) == 2
        unsubscribe()
        assert len(channel) == 1


class TestUnsubscribe:
    def test_unsubscribed_listener_is_not_called(self):
        channel: Channel[int] = Channel()
        seen: list[int] = []
        unsubscribe = channel.subscribe(seen.append)
        unsubscribe()
        channel.publish(1)
        assert seen == []

    def test_unsubscribe_twice_is_noop(self):
        channel: Channel[int] = Channel()
        unsubscribe = channel.subscribe(lambda v: None)
        unsubscribe()
        unsubscribe()
        assert len(channel) == 0

    def test_unsubscribe_self_during_delivery(self):
        channel: Channel[int] = Channel()
        seen: list[str] = []
        unsubscribe_a = None

        def a(value: int) -> None:
            seen.append(f"a{value}")
            unsubscribe_a()

        unsubscribe_a = channel.subscribe(a)
        channel.subscribe(lambda v: seen.append(f"b{v}"))

        channel.publish(1)
        channel.publish(2)

        assert seen == ["a1", "b1", "b2"]

    def test_unsubscribe_later_listener_skips_it_in_current_pass(self):
        channel: Channel[int] = Channel()
        seen: list[str] = []
        handles: dict[str, object] = {}

        channel.subscribe(lambda v: handles["b"]())
        handles["b"] = channel.subscribe(lambda v: seen.append("b"))
        channel.subscribe(lambda v: seen.append("c"))

        channel.publish(1)

        assert seen == ["c"]


class TestReentrancy:
    def test_subscribe_during_delivery_waits_for_next_publish(self):
        channel: Channel[int] = Channel()
        seen: list[str] = []

        def first(value: int) -> None:
            seen.append(f"first{value}")
            if value == 1:
                channel.subscribe(lambda v: seen.append(f"late{v}"))

        channel.subscribe(first)
        channel.publish(1)
        channel.publish(2)

        assert seen == ["first1", "first2", "late2"]

    def test_publish_during_delivery_is_queued(self):
        channel: Channel[int] = Channel()
        seen: list[str] = []

        def a(value: int) -> None:
            seen.append(f"a{value}")
            if value == 1:
                channel.publish(2)

        channel.subscribe(a)
        channel.subscribe(lambda v: seen.append(f"b{v}"))

        channel.publish(1)

        assert seen == ["a1", "b1", "a2", "b2"]


class TestListenerErrors:
    def test_raising_listener_is_logged_and_delivery_continues(self, caplog):
        channel: Channel[int] = Channel("session")
        seen: list[int] = []

        def broken(value: int) -> None:
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)

        with caplog.at_level(logging.ERROR, logger="canispect.session.pubsub"):
            channel.publish(7)

        assert seen == [7]
        assert any("session" in r.getMessage() for r in caplog.records)

    def test_interrupted_pass_drops_queued_values(self):
        channel: Channel[int] = Channel()
        seen: list[str] = []

        def interrupting(value: int) -> None:
            if value == 1:
                channel.publish(2)
                channel.subscribe(lambda v: seen.append(f"late{v}"))
                raise KeyboardInterrupt

        channel.subscribe(interrupting)
        channel.subscribe(lambda v: seen.append(f"b{v}"))

        with pytest.raises(KeyboardInterrupt):
            channel.publish(1)
        channel.publish(3)

        assert seen == ["b3", "late3"]

from __future__ import annotations

from pynxm.state.subscriptions import SubscriptionRegistry


def test_resolve_returns_union_of_subscribed_observers() -> None:
    registry = SubscriptionRegistry()
    registry.subscribe("AvMatrixRoutingV2", "route-feedback")
    registry.subscribe("AvMatrixRoutingV2", "route-variable")
    registry.subscribe("AvioV2", "input-names")

    assert registry.resolve({"AvMatrixRoutingV2"}) == {"route-feedback", "route-variable"}
    assert registry.resolve({"AvMatrixRoutingV2", "AvioV2"}) == {"route-feedback", "route-variable", "input-names"}
    assert registry.resolve({"SystemClock"}) == set()


def test_unsubscribe_drops_empty_entries() -> None:
    registry = SubscriptionRegistry()
    registry.subscribe("AvioV2", "input-names")
    registry.unsubscribe("AvioV2", "input-names")
    registry.unsubscribe("AvioV2", "never-subscribed")

    assert registry.observers("AvioV2") == frozenset()
    assert registry.resolve({"AvioV2"}) == set()


def test_unsubscribe_all_removes_observer_everywhere() -> None:
    registry = SubscriptionRegistry()
    registry.subscribe("AvioV2", "panel")
    registry.subscribe("AvMatrixRoutingV2", "panel")
    registry.subscribe("AvMatrixRoutingV2", "other")

    registry.unsubscribe_all("panel")

    assert registry.resolve({"AvioV2", "AvMatrixRoutingV2"}) == {"other"}


def test_resolve_result_is_detached() -> None:
    registry = SubscriptionRegistry()
    registry.subscribe("AvioV2", "panel")

    registry.resolve({"AvioV2"}).add("intruder")

    assert registry.observers("AvioV2") == {"panel"}

"""
Subscription Registry Tests.
"""

from bus_relay.app.realtime.registry import ALL_BUSES, SubscriptionRegistry


def test_subscribe_is_idempotent():
    registry = SubscriptionRegistry()

    assert registry.subscribe("c1", "BUS-001") is True
    assert registry.subscribe("c1", "BUS-001") is False

    assert registry.subscribers_of("BUS-001") == {"c1"}
    assert registry.subscriptions_of("c1") == {"BUS-001"}


def test_recipients_include_wildcard_without_duplicates():
    registry = SubscriptionRegistry()
    registry.subscribe("c1", "BUS-001")
    registry.subscribe("c1", ALL_BUSES)
    registry.subscribe("c2", ALL_BUSES)
    registry.subscribe("c3", "BUS-002")

    assert registry.recipients_for("BUS-001") == {"c1", "c2"}
    assert registry.recipients_for("BUS-002") == {"c1", "c2", "c3"}
    assert registry.recipients_for("BUS-999") == {"c1", "c2"}


def test_unsubscribe_removes_single_pair():
    registry = SubscriptionRegistry()
    registry.subscribe("c1", "BUS-001")
    registry.subscribe("c1", "BUS-002")

    assert registry.unsubscribe("c1", "BUS-001") is True
    assert registry.unsubscribe("c1", "BUS-001") is False

    assert registry.subscribers_of("BUS-001") == set()
    assert registry.subscriptions_of("c1") == {"BUS-002"}


def test_unsubscribe_all_cleans_every_topic():
    registry = SubscriptionRegistry()
    registry.subscribe("c1", "BUS-001")
    registry.subscribe("c1", ALL_BUSES)
    registry.subscribe("c2", "BUS-001")

    removed = registry.unsubscribe_all("c1")

    assert removed == {"BUS-001", ALL_BUSES}
    assert registry.subscribers_of("BUS-001") == {"c2"}
    assert registry.all_subscribers() == set()
    assert registry.subscriptions_of("c1") == set()
    assert registry.viewer_count() == 1


def test_unsubscribe_all_unknown_connection():
    registry = SubscriptionRegistry()

    assert registry.unsubscribe_all("ghost") == set()


def test_numeric_bus_ids_match_string_topics():
    registry = SubscriptionRegistry()
    registry.subscribe("c1", 42)

    assert registry.subscribers_of("42") == {"c1"}

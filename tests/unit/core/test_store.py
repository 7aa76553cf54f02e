import pytest

from leaderstream.core.store import Envelope, EventStore
from leaderstream.errors.errors import StoreError

# --- Subscribe / backlog ---


def test_subscribe_returns_backlog_in_publish_order():
    store = EventStore()
    store.publish("team_pnl", {"n": 1})
    store.publish("team_pnl", {"n": 2})

    backlog = store.subscribe("team_pnl", "display", lambda env: None)

    assert [env.payload["n"] for env in backlog] == [1, 2]
    assert [env.seq for env in backlog] == [1, 2]
    assert all(isinstance(env, Envelope) for env in backlog)


def test_subscribe_creates_topic_lazily():
    store = EventStore()
    assert store.topics() == []

    backlog = store.subscribe("asset_pnl", "display", lambda env: None)

    assert backlog == ()
    assert store.topics() == ["asset_pnl"]
    assert store.topic_stats("asset_pnl").subscribers == 1


def test_resubscribe_same_id_replaces_callback():
    store = EventStore()
    first: list[Envelope] = []
    second: list[Envelope] = []

    store.subscribe("team_pnl", "display", first.append)
    store.subscribe("team_pnl", "display", second.append)
    store.publish("team_pnl", "x")

    assert first == []
    assert len(second) == 1
    assert store.subscriber_count() == 1
    assert store.topic_stats("team_pnl").subscribers == 1


# --- Publish ---


def test_publish_broadcasts_to_every_listener():
    store = EventStore()
    a: list[Envelope] = []
    b: list[Envelope] = []
    store.subscribe("team_pnl", "a", a.append)
    store.subscribe("asset_pnl", "b", b.append)

    env = store.publish("team_pnl", "payload")

    # Delivery is not filtered by topic
    assert a == [env]
    assert b == [env]
    assert env.topic == "team_pnl"


def test_publish_appends_before_delivery():
    store = EventStore()
    seen_logs: list[int] = []
    store.subscribe("team_pnl", "watcher", lambda env: seen_logs.append(len(store.log("team_pnl"))))

    store.publish("team_pnl", 1)
    store.publish("team_pnl", 2)

    assert seen_logs == [1, 2]


def test_publish_sequence_is_per_topic():
    store = EventStore()
    e1 = store.publish("a", 1)
    e2 = store.publish("b", 1)
    e3 = store.publish("a", 2)

    assert (e1.seq, e2.seq, e3.seq) == (1, 1, 2)
    assert store.topic_stats("a").high_seq == 2
    assert store.topic_stats("a").publish_count == 2


def test_failing_listener_does_not_block_others():
    store = EventStore()
    received: list[Envelope] = []

    def broken(env: Envelope) -> None:
        raise RuntimeError("boom")

    store.subscribe("t", "broken", broken)
    store.subscribe("t", "ok", received.append)

    env = store.publish("t", "x")

    assert received == [env]
    assert store.log("t") == (env,)


# --- Unsubscribe / close ---


def test_unsubscribe_unknown_is_noop():
    store = EventStore()
    store.unsubscribe("missing", "nobody")
    store.subscribe("t", "a", lambda env: None)
    store.unsubscribe("t", "nobody")

    assert store.subscriber_count() == 1


def test_unsubscribe_stops_delivery():
    store = EventStore()
    received: list[Envelope] = []
    store.subscribe("t", "a", received.append)

    store.unsubscribe("t", "a")
    store.publish("t", "x")

    assert received == []
    assert store.subscriber_count() == 0


def test_unsubscribe_keeps_callback_while_registered_elsewhere():
    store = EventStore()
    received: list[Envelope] = []
    store.subscribe("t1", "a", received.append)
    store.subscribe("t2", "a", received.append)

    store.unsubscribe("t1", "a")
    store.publish("t2", "x")

    assert len(received) == 1
    assert store.topic_stats("t1").subscribers == 0
    assert store.topic_stats("t2").subscribers == 1


def test_close_releases_listeners_and_rejects_publish():
    store = EventStore()
    received: list[Envelope] = []
    store.subscribe("t", "a", received.append)
    store.publish("t", 1)

    store.close()
    store.close()  # idempotent

    assert store.closed
    assert store.subscriber_count() == 0
    assert len(store.log("t")) == 1
    with pytest.raises(StoreError):
        store.publish("t", 2)
    with pytest.raises(StoreError):
        store.subscribe("t", "b", received.append)
    assert len(received) == 1


def test_topic_stats_unknown_raises():
    store = EventStore()
    with pytest.raises(KeyError):
        store.topic_stats("unknown.topic")


def test_different_ids_get_the_same_backlog():
    store = EventStore()
    for n in range(5):
        store.publish("team_pnl", n)

    first = store.subscribe("team_pnl", "display", lambda env: None)
    second = store.subscribe("team_pnl", "ranking", lambda env: None)

    assert len(first) == len(second) == 5
    assert first == second
    assert [env.payload for env in first] == [0, 1, 2, 3, 4]

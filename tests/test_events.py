from dashboard.events import EventStream, Subscription


def test_publish_reaches_all_listeners():
    stream = EventStream()
    a, b = [], []
    stream.subscribe(a.append)
    stream.subscribe(b.append)

    stream.publish(1)

    assert a == [1]
    assert b == [1]


def test_cancel_is_idempotent():
    stream = EventStream()
    seen = []
    token = stream.subscribe(seen.append)

    token.cancel()
    token.cancel()
    stream.publish("x")

    assert seen == []
    assert len(stream) == 0
    assert not token.active


def test_failing_listener_does_not_block_others():
    stream = EventStream()
    seen = []

    def boom(event):
        raise RuntimeError("listener bug")

    stream.subscribe(boom)
    stream.subscribe(seen.append)
    stream.publish("event")

    assert seen == ["event"]


def test_inactive_token():
    token = Subscription.inactive()

    assert not token.active
    token.cancel()

# dr_core/common/tests/test_events.py

from dr_core.common.events import publish, subscribe, unsubscribe


def test_publish_reaches_subscribers_in_order():
    seen = []

    @subscribe("demo.happened")
    def first(payload):
        seen.append(("first", payload["n"]))

    @subscribe("demo.happened")
    def second(payload):
        seen.append(("second", payload["n"]))

    try:
        publish("demo.happened", {"n": 1})
    finally:
        unsubscribe("demo.happened", first)
        unsubscribe("demo.happened", second)

    publish("demo.happened", {"n": 2})
    assert seen == [("first", 1), ("second", 1)]


def test_publish_without_subscribers_is_noop():
    publish("nobody.listens", {})


def test_unsubscribe_unknown_handler_is_noop():
    unsubscribe("nobody.listens", lambda payload: None)

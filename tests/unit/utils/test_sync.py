import threading

from lambdastub.utils.sync import poll_condition


def test_poll_condition():
    event = threading.Event()
    threading.Timer(0.05, event.set).start()

    assert poll_condition(event.is_set, timeout=5, interval=0.01)


def test_poll_condition_timeout():
    assert not poll_condition(lambda: False, timeout=0.05, interval=0.01)

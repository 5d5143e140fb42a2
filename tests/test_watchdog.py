import queue
import time

from falcout.watchdog import Watchdog


def test_fires_with_payload_once():
    fired = queue.Queue()
    with Watchdog() as wd:
        wd.start(fired.put, resolution=0.01)
        wd.set_timeout(0.05, "file")
        first = fired.get(timeout=2)
        time.sleep(0.15)
    assert first == "file"
    assert fired.empty()


def test_cancel_prevents_callback():
    fired = []
    with Watchdog() as wd:
        wd.start(fired.append, resolution=0.01)
        wd.set_timeout(0.2, "stdout")
        wd.cancel_timeout()
        time.sleep(0.35)
    assert fired == []


def test_stop_prevents_callback():
    fired = []
    wd = Watchdog()
    wd.start(fired.append, resolution=0.01)
    wd.set_timeout(0.05, "syslog")
    wd.stop()
    time.sleep(0.15)
    assert fired == []


def test_restart_replaces_callback():
    first = []
    second = queue.Queue()
    with Watchdog() as wd:
        wd.start(first.append, resolution=0.01)
        wd.start(second.put, resolution=0.01)
        wd.set_timeout(0.02, "http")
        got = second.get(timeout=2)
    assert first == []
    assert got == "http"


def test_rearming_fires_again():
    fired = queue.Queue()
    with Watchdog() as wd:
        wd.start(fired.put, resolution=0.01)
        wd.set_timeout(0.02, "a")
        first = fired.get(timeout=2)
        wd.set_timeout(0.02, "b")
        second = fired.get(timeout=2)
    assert [first, second] == ["a", "b"]
    assert fired.empty()
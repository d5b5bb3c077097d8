import threading
import unittest

from mathpractice.app.timer import Countdown


class CancelOnRelease:
    """Lock that runs ``cancel()`` the first time it is released."""

    def __init__(self, countdown: Countdown) -> None:
        self._inner = threading.Lock()
        self._countdown = countdown
        self._armed = True

    def __enter__(self) -> None:
        self._inner.acquire()

    def __exit__(self, *exc) -> None:
        self._inner.release()
        if self._armed:
            self._armed = False
            self._countdown.cancel()


class CountdownTests(unittest.TestCase):
    def setUp(self) -> None:
        self.updates = []
        self.time_up = 0

    def _on_update(self, remaining: int) -> None:
        self.updates.append(remaining)

    def _on_time_up(self) -> None:
        self.time_up += 1

    def test_manual_ticks_reach_time_up_once(self) -> None:
        cd = Countdown(3, self._on_update, self._on_time_up)
        self.assertEqual(cd.tick(), 2)
        self.assertEqual(cd.tick(), 1)
        self.assertEqual(cd.tick(), 0)
        cd.tick()
        self.assertEqual(self.updates, [2, 1])
        self.assertEqual(self.time_up, 1)
        self.assertTrue(cd.finished)

    def test_cancel_silences_callbacks(self) -> None:
        cd = Countdown(5, self._on_update, self._on_time_up)
        cd.tick()
        cd.cancel()
        cd.cancel()
        cd.tick()
        self.assertEqual(self.updates, [4])
        self.assertEqual(cd.remaining, 4)
        self.assertEqual(self.time_up, 0)

    def test_cancel_right_after_tick_releases_lock(self) -> None:
        for duration in (5, 1):
            cd = Countdown(duration, self._on_update, self._on_time_up)
            cd._lock = CancelOnRelease(cd)
            cd.tick()
            self.assertEqual(self.updates, [])
            self.assertEqual(self.time_up, 0)

    def test_zero_duration_is_already_finished(self) -> None:
        cd = Countdown(0, self._on_update, self._on_time_up)
        self.assertTrue(cd.finished)
        self.assertEqual(cd.tick(), 0)
        self.assertEqual(self.time_up, 0)

    def test_background_ticks(self) -> None:
        done = threading.Event()
        cd = Countdown(3, self._on_update, done.set, interval=0.01)
        cd.start()
        self.assertTrue(done.wait(2.0))
        self.assertEqual(self.updates, [2, 1])
        self.assertFalse(cd.running)

    def test_pause_keeps_remaining(self) -> None:
        cd = Countdown(100, self._on_update, self._on_time_up, interval=10.0)
        cd.start()
        self.assertTrue(cd.running)
        cd.pause()
        self.assertFalse(cd.running)
        self.assertEqual(cd.remaining, 100)
        cd.cancel()


if __name__ == "__main__":
    unittest.main()

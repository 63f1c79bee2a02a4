import queue
import threading
import time
import unittest

from gha_exporter.core.exceptions import QueueClosedError
from gha_exporter.workers import HandoffQueue


class TestHandoffQueue(unittest.TestCase):
    def setUp(self):
        self.queue = HandoffQueue()

    def test_put_blocks_until_taken(self):
        returned = threading.Event()

        def producer():
            self.queue.put("event")
            returned.set()

        thread = threading.Thread(target=producer)
        thread.start()
        # Nobody has taken it yet
        self.assertFalse(returned.wait(0.2))

        self.assertEqual(self.queue.get(timeout=1), "event")
        self.assertTrue(returned.wait(1))
        thread.join(1)

    def test_put_times_out_without_consumer(self):
        with self.assertRaises(queue.Full):
            self.queue.put("event", timeout=0.05)
        # The withdrawn offer is not delivered later
        self.assertIsNone(self.queue.get(timeout=0.05))

    def test_get_times_out(self):
        self.assertIsNone(self.queue.get(timeout=0.05))

    def test_close_releases_blocked_producer(self):
        errors = []

        def producer():
            try:
                self.queue.put("event")
            except QueueClosedError as exc:
                errors.append(exc)

        thread = threading.Thread(target=producer)
        thread.start()
        time.sleep(0.1)
        self.queue.close()
        thread.join(1)

        self.assertFalse(thread.is_alive())
        self.assertEqual(len(errors), 1)

    def test_put_after_close_fails(self):
        self.queue.close()

        self.assertTrue(self.queue.closed)
        with self.assertRaises(QueueClosedError):
            self.queue.put("event", timeout=1)
        self.assertIsNone(self.queue.get(timeout=0.05))

    def test_producers_are_served_one_at_a_time(self):
        received = []

        def consumer():
            for _ in range(3):
                received.append(self.queue.get(timeout=2))

        thread = threading.Thread(target=consumer)
        thread.start()
        producers = [
            threading.Thread(target=self.queue.put, args=(n,)) for n in range(3)
        ]
        for producer in producers:
            producer.start()
        for producer in producers:
            producer.join(2)
        thread.join(2)

        self.assertEqual(sorted(received), [0, 1, 2])


if __name__ == "__main__":
    unittest.main()

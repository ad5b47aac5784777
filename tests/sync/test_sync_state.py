import threading
import unittest
from datetime import datetime, timezone

from drivemirror.sync import SyncState


class TestSyncState(unittest.TestCase):
    def test_begin_and_end(self) -> None:
        state = SyncState()
        self.assertFalse(state.is_syncing)
        self.assertTrue(state.try_begin_sync())
        self.assertTrue(state.is_syncing)
        self.assertFalse(state.try_begin_sync())
        state.end_sync()
        self.assertFalse(state.is_syncing)
        self.assertIsNone(state.last_sync_time)

    def test_last_sync_time_only_recorded_on_completion(self) -> None:
        state = SyncState()
        done = datetime(2025, 1, 1, tzinfo=timezone.utc)
        state.try_begin_sync()
        state.end_sync(done)
        state.try_begin_sync()
        state.end_sync(None)
        self.assertEqual(state.last_sync_time, done)

    def test_only_one_concurrent_begin_wins(self) -> None:
        state = SyncState()
        barrier = threading.Barrier(8)
        wins = []

        def contender() -> None:
            barrier.wait()
            if state.try_begin_sync():
                wins.append(1)

        threads = [threading.Thread(target=contender) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(wins), 1)


if __name__ == "__main__":
    unittest.main()

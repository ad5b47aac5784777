import unittest
from datetime import timedelta
from unittest.mock import Mock

from fakes import FakeGateway, FakeScheduler

from drivemirror.errors import InvalidStateError, NetworkError, WebhookValidationError
from drivemirror.models import ChannelLease, SyncResult
from drivemirror.notify import ChangeNotifier
from drivemirror.notify.notifier import RENEW_RETRY_SECONDS, RENEWAL_JOB_ID
from drivemirror.util.time import now_utc

CALLBACK = "https://mirror.example.com/webhook/drive"


class TestChangeNotifier(unittest.TestCase):
    def setUp(self) -> None:
        self.gw = FakeGateway()
        self.reconciler = Mock()
        self.reconciler.sync_now.return_value = SyncResult(added=1)
        self.scheduler = FakeScheduler()
        self.notifier = ChangeNotifier(
            self.gw,
            self.reconciler,
            ttl_seconds=3600,
            renew_margin_seconds=600,
            scheduler=self.scheduler,
        )

    def _headers(self, lease: ChannelLease, number: int = 2, state: str = "change") -> dict:
        return {
            "X-Goog-Channel-ID": lease.channel_id,
            "X-Goog-Channel-Token": lease.token,
            "X-Goog-Resource-State": state,
            "X-Goog-Message-Number": str(number),
        }

    def test_margin_must_be_below_ttl(self) -> None:
        with self.assertRaises(ValueError):
            ChangeNotifier(self.gw, self.reconciler, ttl_seconds=600, renew_margin_seconds=600)

    def test_register_schedules_renewal_before_expiry(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)

        self.assertEqual(self.gw.watch_calls[0][0], CALLBACK)
        self.assertEqual(self.gw.watch_calls[0][3], 3600)
        self.assertIs(self.notifier.lease, lease)
        _, run_at = self.scheduler.date_jobs[RENEWAL_JOB_ID]
        self.assertEqual(run_at, lease.expires_at - timedelta(seconds=600))
        self.assertTrue(self.notifier.status()["enabled"])

    def test_valid_notification_triggers_sync(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        self.assertTrue(self.notifier.handle_notification(self._headers(lease)))
        self.reconciler.sync_now.assert_called_once()

    def test_handshake_does_not_trigger_sync(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        self.assertFalse(self.notifier.handle_notification(self._headers(lease, 1, "sync")))
        self.reconciler.sync_now.assert_not_called()

    def test_foreign_channel_is_ignored(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        headers = self._headers(lease)
        headers["X-Goog-Channel-ID"] = "someone-else"
        self.assertFalse(self.notifier.handle_notification(headers))
        self.reconciler.sync_now.assert_not_called()

    def test_wrong_token_is_rejected(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        headers = self._headers(lease)
        headers["X-Goog-Channel-Token"] = "forged"
        with self.assertRaises(WebhookValidationError):
            self.notifier.validate(headers)

    def test_duplicate_delivery_is_ignored(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        self.assertTrue(self.notifier.handle_notification(self._headers(lease, 5)))
        self.assertFalse(self.notifier.handle_notification(self._headers(lease, 5)))
        self.assertFalse(self.notifier.handle_notification(self._headers(lease, 4)))
        self.assertTrue(self.notifier.handle_notification(self._headers(lease, 6)))
        self.assertEqual(self.reconciler.sync_now.call_count, 2)

    def test_no_lease_means_nothing_is_accepted(self) -> None:
        self.assertFalse(self.notifier.handle_notification({"X-Goog-Channel-ID": "c"}))
        self.reconciler.sync_now.assert_not_called()

    def test_expired_lease_is_rejected(self) -> None:
        self.notifier.register_webhook(CALLBACK)
        stale = ChannelLease(
            channel_id="old",
            resource_id="r",
            token="t",
            expires_at=now_utc() - timedelta(seconds=1),
        )
        self.notifier._lease = stale
        with self.assertRaises(WebhookValidationError):
            self.notifier.validate(self._headers(stale))

    def test_sync_failure_is_acknowledged_not_raised(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        self.reconciler.sync_now.side_effect = RuntimeError("boom")
        self.assertFalse(self.notifier.handle_notification(self._headers(lease)))

    def test_renew_replaces_lease_and_releases_old(self) -> None:
        first = self.notifier.register_webhook(CALLBACK)
        second = self.notifier.renew()

        self.assertIsNotNone(second)
        self.assertNotEqual(first.channel_id, second.channel_id)
        self.assertEqual(self.gw.stopped, [first])
        # Notifications from the old channel no longer count.
        self.assertFalse(self.notifier.handle_notification(self._headers(first, 10)))

    def test_renew_without_registration(self) -> None:
        with self.assertRaises(InvalidStateError):
            self.notifier.renew()

    def test_failed_renewal_keeps_old_lease_and_retries(self) -> None:
        first = self.notifier.register_webhook(CALLBACK)
        self.gw.watch = Mock(side_effect=NetworkError("offline"))

        self.assertIsNone(self.notifier.renew())

        self.assertIs(self.notifier.lease, first)
        _, run_at = self.scheduler.date_jobs[RENEWAL_JOB_ID]
        self.assertLessEqual(run_at, now_utc() + timedelta(seconds=RENEW_RETRY_SECONDS))

    def test_stop_releases_and_cancels(self) -> None:
        lease = self.notifier.register_webhook(CALLBACK)
        self.notifier.stop()
        self.assertIsNone(self.notifier.lease)
        self.assertEqual(self.gw.stopped, [lease])
        self.assertIn(RENEWAL_JOB_ID, self.scheduler.cancelled)
        self.assertEqual(self.notifier.status(), {"enabled": False})


if __name__ == "__main__":
    unittest.main()

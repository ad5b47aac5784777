import unittest

from drivemirror.config import MirrorConfig


class TestMirrorConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = MirrorConfig()
        self.assertEqual(config.provider, "google")
        self.assertEqual(config.root_path, "Documents/")
        self.assertEqual(config.sync_interval_seconds, 300)
        self.assertIsNone(config.webhook_url)
        self.assertTrue(config.share_uploads)

    def test_from_env(self) -> None:
        config = MirrorConfig.from_env({
            "DRIVEMIRROR_PROVIDER": "OneDrive",
            "DRIVEMIRROR_DATABASE_URL": "sqlite:///tmp.db",
            "DRIVEMIRROR_ROOT_FOLDER": "/Shared/",
            "DRIVEMIRROR_SYNC_INTERVAL": "60",
            "DRIVEMIRROR_WEBHOOK_URL": "https://x/webhook/drive",
            "DRIVEMIRROR_SHARE_UPLOADS": "no",
            "DRIVEMIRROR_ONEDRIVE_ACCESS_TOKEN": "tok",
            "DRIVEMIRROR_LOG_LEVEL": "debug",
        })
        self.assertEqual(config.provider, "onedrive")
        self.assertEqual(config.database_url, "sqlite:///tmp.db")
        self.assertEqual(config.root_path, "Shared/")
        self.assertEqual(config.sync_interval_seconds, 60)
        self.assertEqual(config.webhook_url, "https://x/webhook/drive")
        self.assertFalse(config.share_uploads)
        self.assertEqual(config.onedrive_access_token, "tok")
        self.assertEqual(config.log_level, "DEBUG")

    def test_empty_env_values_fall_back_to_defaults(self) -> None:
        config = MirrorConfig.from_env({"DRIVEMIRROR_SYNC_INTERVAL": "", "DRIVEMIRROR_WEBHOOK_URL": ""})
        self.assertEqual(config.sync_interval_seconds, 300)
        self.assertIsNone(config.webhook_url)

    def test_validation(self) -> None:
        with self.assertRaises(ValueError):
            MirrorConfig(provider="dropbox")
        with self.assertRaises(ValueError):
            MirrorConfig(sync_interval_seconds=0)
        with self.assertRaises(ValueError):
            MirrorConfig(webhook_ttl_seconds=600, webhook_renew_margin_seconds=600)
        with self.assertRaises(ValueError):
            MirrorConfig(root_folder_name="/")
        with self.assertRaises(ValueError):
            MirrorConfig.from_env({"DRIVEMIRROR_SHARE_UPLOADS": "maybe"})


if __name__ == "__main__":
    unittest.main()

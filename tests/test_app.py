import logging
import unittest

from drivemirror.app import build_gateway, setup_logging
from drivemirror.config import MirrorConfig
from drivemirror.errors import AuthExpiredError
from drivemirror.gateway import OneDriveGateway


class TestBuildGateway(unittest.TestCase):
    def test_onedrive_with_token(self) -> None:
        gw = build_gateway(MirrorConfig(provider="onedrive", onedrive_access_token="tok", root_folder_name="Docs"))
        try:
            self.assertIsInstance(gw, OneDriveGateway)
            self.assertEqual(gw.root_path, "Docs/")
        finally:
            gw.close()

    def test_onedrive_without_token(self) -> None:
        with self.assertRaises(AuthExpiredError):
            build_gateway(MirrorConfig(provider="onedrive"))

    def test_google_without_token_file(self) -> None:
        with self.assertRaises(AuthExpiredError):
            build_gateway(MirrorConfig(google_token_file="/nonexistent/token.json"))


class TestSetupLogging(unittest.TestCase):
    def test_is_idempotent(self) -> None:
        logger = logging.getLogger("drivemirror")
        before = list(logger.handlers)
        try:
            setup_logging("DEBUG")
            setup_logging("INFO")
            added = [h for h in logger.handlers if h not in before]
            self.assertLessEqual(len(added), 1)
            self.assertEqual(logger.level, logging.INFO)
        finally:
            for handler in logger.handlers[:]:
                if handler not in before:
                    logger.removeHandler(handler)


if __name__ == "__main__":
    unittest.main()

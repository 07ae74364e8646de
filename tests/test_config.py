import os
import unittest
from unittest import mock

import support  # noqa: F401

from utils.config import load_settings


class ConfigTestCase(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.db_path, "data/storefront.sqlite")
        self.assertEqual(settings.storage_path, "data/local_storage.json")
        self.assertEqual(settings.tax_rate, 0.10)
        self.assertEqual(settings.page_size, 10)
        self.assertFalse(settings.debug)
        self.assertIsNone(settings.log_file)
        self.assertIsNone(settings.assistant_url)
        self.assertIsNone(settings.assistant_api_key)
        self.assertEqual(settings.assistant_timeout, 30.0)

    def test_environment_overrides(self):
        env = {
            "STOREFRONT_DB_PATH": "/tmp/shop.sqlite",
            "STOREFRONT_TAX_RATE": "0.2",
            "STOREFRONT_PAGE_SIZE": "25",
            "DEBUG": "1",
            "STOREFRONT_LOG_FILE": "/tmp/shop.log",
            "STOREFRONT_ASSISTANT_URL": "https://assistant.example.com/v1/answer",
            "STOREFRONT_ASSISTANT_API_KEY": "secret",
            "STOREFRONT_ASSISTANT_TIMEOUT": "5",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.db_path, "/tmp/shop.sqlite")
        self.assertEqual(settings.tax_rate, 0.2)
        self.assertEqual(settings.page_size, 25)
        self.assertTrue(settings.debug)
        self.assertEqual(settings.log_file, "/tmp/shop.log")
        self.assertEqual(settings.assistant_url, "https://assistant.example.com/v1/answer")
        self.assertEqual(settings.assistant_api_key, "secret")
        self.assertEqual(settings.assistant_timeout, 5.0)

    def test_invalid_numbers_fall_back(self):
        env = {"STOREFRONT_TAX_RATE": "ten percent", "STOREFRONT_PAGE_SIZE": "0"}
        with mock.patch.dict(os.environ, env, clear=True):
            with self.assertLogs("utils.config", level="WARNING"):
                settings = load_settings()
        self.assertEqual(settings.tax_rate, 0.10)
        # page size is never below one
        self.assertEqual(settings.page_size, 1)


if __name__ == "__main__":
    unittest.main()

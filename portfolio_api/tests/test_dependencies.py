import unittest
from unittest.mock import patch

from portfolio_api import dependencies
from portfolio_api.config import Settings
from portfolio_api.store import InMemoryDocumentStore, SqlDocumentStore


def _settings(**overrides) -> Settings:
    values = {
        "mongodb_uri": None,
        "database_url": None,
        "use_in_memory_backends": False,
    }
    values.update(overrides)
    return Settings(**values)


class DocumentStoreSelectionTests(unittest.TestCase):
    def setUp(self):
        dependencies.close_document_store()

    def tearDown(self):
        dependencies.close_document_store()

    @patch("portfolio_api.dependencies.get_settings")
    def test_defaults_to_in_memory(self, mock_settings):
        mock_settings.return_value = _settings()
        with self.assertLogs("portfolio_api.dependencies", level="WARNING") as logs:
            store = dependencies.get_document_store()
        self.assertTrue(any("in-memory" in line for line in logs.output))
        self.assertIsInstance(store, InMemoryDocumentStore)
        self.assertIs(dependencies.get_document_store(), store)

    @patch("portfolio_api.dependencies.get_settings")
    def test_in_memory_toggle_wins(self, mock_settings):
        mock_settings.return_value = _settings(
            mongodb_uri="mongodb://db.test:27017", use_in_memory_backends=True
        )
        with self.assertLogs("portfolio_api.dependencies", level="INFO") as logs:
            store = dependencies.get_document_store()
        self.assertIsInstance(store, InMemoryDocumentStore)
        self.assertFalse(any("WARNING" in line for line in logs.output))

    @patch("portfolio_api.dependencies.MongoDocumentStore")
    @patch("portfolio_api.dependencies.get_settings")
    def test_mongo_uri_selects_mongo(self, mock_settings, mock_mongo):
        mock_settings.return_value = _settings(
            mongodb_uri="mongodb://db.test:27017",
            database_url="sqlite+pysqlite:///:memory:",
        )
        store = dependencies.get_document_store()
        self.assertIs(store, mock_mongo.return_value)
        mock_mongo.assert_called_once_with("mongodb://db.test:27017", "ruhul-amin")

    @patch("portfolio_api.dependencies.get_settings")
    def test_database_url_selects_sql(self, mock_settings):
        mock_settings.return_value = _settings(
            database_url="sqlite+pysqlite:///:memory:"
        )
        self.assertIsInstance(dependencies.get_document_store(), SqlDocumentStore)

    @patch("portfolio_api.dependencies.get_settings")
    def test_close_resets_singleton(self, mock_settings):
        mock_settings.return_value = _settings()
        first = dependencies.get_document_store()
        dependencies.close_document_store()
        self.assertIsNot(dependencies.get_document_store(), first)


class SettingsTests(unittest.TestCase):
    @patch.dict(
        "os.environ",
        {
            "MONGODB_URI": "mongodb://env.test:27017",
            "MONGODB_DATABASE": "portfolio",
            "PORT": "8080",
            "PORTFOLIO_STRICT_IDENTIFIERS": "true",
        },
    )
    def test_reads_environment(self):
        settings = Settings()
        self.assertEqual(settings.mongodb_uri, "mongodb://env.test:27017")
        self.assertEqual(settings.mongodb_database, "portfolio")
        self.assertEqual(settings.port, 8080)
        self.assertTrue(settings.strict_identifiers)
        self.assertEqual(settings.api_prefix, "/api")


if __name__ == "__main__":
    unittest.main()

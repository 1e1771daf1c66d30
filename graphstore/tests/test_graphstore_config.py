"""Tests for Neo4j connection settings resolution."""

import os
import tempfile
import unittest
from unittest import mock

from core.startup_config import ConfigValidationError
from graphstore.config import resolve_neo4j_settings

COMPOSE = """
services:
  neo4j:
    image: neo4j:5
    ports:
      - "17687:7687"
    environment:
      - NEO4J_AUTH=graph/secret
"""


class TestResolveNeo4jSettings(unittest.TestCase):
    def setUp(self) -> None:
        handle = tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False)
        handle.write(COMPOSE)
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        self.compose_path = handle.name

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_compose_port_and_auth(self) -> None:
        settings = resolve_neo4j_settings(self.compose_path, strict=True)
        self.assertEqual(settings.uri, "bolt://127.0.0.1:17687")
        self.assertEqual((settings.username, settings.password), ("graph", "secret"))
        self.assertEqual(settings.database, "neo4j")

    @mock.patch.dict(
        os.environ,
        {"NEO4J_URI": "bolt://db:7687", "NEO4J_AUTH": "u/p", "NEO4J_DATABASE": "code"},
        clear=True,
    )
    def test_environment_wins_without_compose(self) -> None:
        settings = resolve_neo4j_settings("/missing/docker-compose.yml", strict=True)
        self.assertEqual(settings.uri, "bolt://db:7687")
        self.assertEqual((settings.username, settings.password), ("u", "p"))
        self.assertEqual(settings.database, "code")

    @mock.patch.dict(os.environ, {"NEO4J_URI": "bolt://db:7687"}, clear=True)
    def test_uri_from_env_auth_from_compose(self) -> None:
        settings = resolve_neo4j_settings(self.compose_path, strict=True)
        self.assertEqual(settings.uri, "bolt://db:7687")
        self.assertEqual(settings.username, "graph")

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_missing_compose_strict_raises(self) -> None:
        with self.assertRaises(ConfigValidationError):
            resolve_neo4j_settings("/missing/docker-compose.yml", strict=True)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_missing_compose_non_strict_uses_defaults(self) -> None:
        settings = resolve_neo4j_settings("/missing/docker-compose.yml", strict=False)
        self.assertEqual(settings.uri, "bolt://127.0.0.1:7687")
        self.assertEqual(settings.username, "neo4j")


if __name__ == "__main__":
    unittest.main()

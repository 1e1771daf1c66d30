"""Tests for startup config validation helpers."""

import os
import tempfile
import unittest
from unittest import mock

from core.startup_config import (
    ConfigValidationError,
    load_yaml_mapping,
    resolve_allow_syntax_errors,
    resolve_max_workers,
    resolve_neo4j_auth,
    resolve_service_port,
    resolve_strict_config_validation,
)


class TestStartupConfig(unittest.TestCase):
    def _write_yaml(self, content: str) -> str:
        handle = tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False)
        handle.write(content)
        handle.flush()
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def test_load_non_strict_missing_returns_empty(self) -> None:
        payload = load_yaml_mapping("/definitely/missing.yml", strict=False)
        self.assertEqual(payload, {})

    def test_load_strict_missing_raises(self) -> None:
        with self.assertRaises(ConfigValidationError):
            load_yaml_mapping("/definitely/missing.yml", strict=True)

    def test_load_strict_invalid_yaml_raises(self) -> None:
        path = self._write_yaml("sources: [read\n")
        with self.assertRaises(ConfigValidationError):
            load_yaml_mapping(path, strict=True)

    def test_load_non_mapping_payload(self) -> None:
        path = self._write_yaml("- read\n- csv\n")
        self.assertEqual(load_yaml_mapping(path, strict=False), {})
        with self.assertRaises(ConfigValidationError):
            load_yaml_mapping(path, strict=True)

    def test_load_valid_mapping(self) -> None:
        path = self._write_yaml("sources:\n  - read\n")
        self.assertEqual(load_yaml_mapping(path), {"sources": ["read"]})

    def test_resolve_service_port_parses_mapping(self) -> None:
        compose = {
            "services": {
                "neo4j": {
                    "ports": ["127.0.0.1:7688:7687", "7474:7474"],
                }
            }
        }
        port = resolve_service_port(
            compose_data=compose,
            service_name="neo4j",
            container_port=7687,
            default_port=7687,
            strict=True,
        )
        self.assertEqual(port, 7688)

    def test_resolve_service_port_missing_mapping_falls_back(self) -> None:
        compose = {"services": {"neo4j": {"ports": ["7474:7474"]}}}
        port = resolve_service_port(compose, "neo4j", 7687, 7687, strict=False)
        self.assertEqual(port, 7687)
        with self.assertRaises(ConfigValidationError):
            resolve_service_port(compose, "neo4j", 7687, 7687, strict=True)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_resolve_neo4j_auth_from_compose(self) -> None:
        compose = {"services": {"neo4j": {"environment": ["NEO4J_AUTH=neo4j/secret"]}}}
        self.assertEqual(resolve_neo4j_auth(compose, strict=True), ("neo4j", "secret"))

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_resolve_neo4j_auth_dict_environment(self) -> None:
        compose = {"services": {"neo4j": {"environment": {"NEO4J_AUTH": "admin/pw"}}}}
        self.assertEqual(resolve_neo4j_auth(compose, strict=True), ("admin", "pw"))

    @mock.patch.dict(os.environ, {"NEO4J_AUTH": "env/override"}, clear=True)
    def test_resolve_neo4j_auth_env_wins(self) -> None:
        compose = {"services": {"neo4j": {"environment": ["NEO4J_AUTH=neo4j/secret"]}}}
        self.assertEqual(resolve_neo4j_auth(compose), ("env", "override"))

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_resolve_neo4j_auth_strict_invalid_raises(self) -> None:
        compose = {"services": {"neo4j": {"environment": ["NEO4J_AUTH=invalid"]}}}
        with self.assertRaises(ConfigValidationError):
            resolve_neo4j_auth(compose, strict=True)
        self.assertEqual(resolve_neo4j_auth(compose, strict=False), ("neo4j", "neo4jpassword"))


class TestEnvironmentFlags(unittest.TestCase):
    @mock.patch.dict(os.environ, {"STRICT_CONFIG_VALIDATION": "true"}, clear=True)
    def test_strict_flag_true(self) -> None:
        self.assertTrue(resolve_strict_config_validation())

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_flags_default_when_unset(self) -> None:
        self.assertFalse(resolve_strict_config_validation())
        self.assertTrue(resolve_allow_syntax_errors(default=True))

    @mock.patch.dict(os.environ, {"ALLOW_SYNTAX_ERRORS": "0"}, clear=True)
    def test_allow_syntax_errors_false(self) -> None:
        self.assertFalse(resolve_allow_syntax_errors(default=True))

    @mock.patch.dict(os.environ, {"EXTRACTION_MAX_WORKERS": "3"}, clear=True)
    def test_max_workers_from_env(self) -> None:
        self.assertEqual(resolve_max_workers(default=8), 3)

    @mock.patch.dict(os.environ, {"EXTRACTION_MAX_WORKERS": "zero"}, clear=True)
    def test_max_workers_invalid_uses_default(self) -> None:
        self.assertEqual(resolve_max_workers(default=8), 8)

    @mock.patch.dict(os.environ, {"EXTRACTION_MAX_WORKERS": "0"}, clear=True)
    def test_max_workers_below_minimum_uses_default(self) -> None:
        self.assertEqual(resolve_max_workers(default=8), 8)


if __name__ == "__main__":
    unittest.main()

"""Startup configuration helpers.

Provides strict/non-strict YAML loading, environment flags for the batch
runner, and docker-compose parsing used to locate the Neo4j graph store.
In non-strict mode invalid configuration is logged and defaults are used;
in strict mode it raises ``ConfigValidationError``.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, TypeVar

import yaml

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigValidationError(RuntimeError):
    """Raised when strict startup validation fails."""


def _reject(msg: str, strict: bool, fallback: T, cause: Optional[BaseException] = None) -> T:
    """Raise in strict mode, otherwise warn and return ``fallback``."""
    if strict:
        raise ConfigValidationError(msg) from cause
    logger.warning("%s; using defaults", msg)
    return fallback


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%d is below %d; using %d", name, value, minimum, default)
        return default
    return value


def resolve_strict_config_validation(default: bool = False) -> bool:
    """Resolve strict validation mode from ``STRICT_CONFIG_VALIDATION`` env."""
    return _env_flag("STRICT_CONFIG_VALIDATION", default=default)


def resolve_allow_syntax_errors(default: bool = False) -> bool:
    """Resolve partial-tree extraction from ``ALLOW_SYNTAX_ERRORS`` env."""
    return _env_flag("ALLOW_SYNTAX_ERRORS", default=default)


def resolve_max_workers(default: int) -> int:
    """Resolve the batch worker limit from ``EXTRACTION_MAX_WORKERS`` env."""
    return _env_int("EXTRACTION_MAX_WORKERS", default=default)


def load_yaml_mapping(path: str, strict: bool = False) -> dict[str, Any]:
    """Load a YAML file whose top level must be a mapping.

    In non-strict mode this returns an empty dict on read/parse failures.
    In strict mode this raises ``ConfigValidationError``.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = yaml.safe_load(f)
    except FileNotFoundError as exc:
        return _reject(f"Config file not found: {path}", strict, {}, exc)
    except yaml.YAMLError as exc:
        return _reject(f"Failed to parse YAML at {path}: {exc}", strict, {}, exc)

    if payload is None:
        return _reject(f"Config file is empty: {path}", strict, {})
    if not isinstance(payload, dict):
        return _reject(
            f"Unexpected config payload type in {path}: {type(payload).__name__}",
            strict,
            {},
        )
    return payload


def get_service_config(
    compose_data: dict[str, Any],
    service_name: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Fetch one service's config from a docker-compose payload."""
    services = compose_data.get("services")
    if not isinstance(services, dict):
        return _reject("docker-compose missing 'services' section", strict, {})
    service = services.get(service_name)
    if not isinstance(service, dict):
        return _reject(f"docker-compose missing service '{service_name}'", strict, {})
    return service


def _parse_port_mapping(mapping: Any) -> Optional[tuple[int, int]]:
    """Parse ``[ip:]host:container[/proto]`` into (host, container)."""
    text = str(mapping).strip().strip('"').strip("'").split("/", 1)[0]
    if not text:
        return None
    parts = text.split(":")
    try:
        if len(parts) == 1:
            port = int(parts[0])
            return port, port
        return int(parts[-2]), int(parts[-1])
    except ValueError:
        return None


def resolve_service_port(
    compose_data: dict[str, Any],
    service_name: str,
    container_port: int,
    default_port: int,
    strict: bool = False,
) -> int:
    """Resolve the host port mapped to ``service_name:container_port``."""
    service = get_service_config(compose_data, service_name, strict=strict)
    ports = service.get("ports", [])
    if not isinstance(ports, list):
        return _reject(
            f"Service '{service_name}' has invalid 'ports' section", strict, default_port
        )

    for mapping in ports:
        parsed = _parse_port_mapping(mapping)
        if parsed is not None and parsed[1] == container_port:
            return parsed[0]

    return _reject(
        f"Service '{service_name}' has no mapping for container port {container_port}",
        strict,
        default_port,
    )


def _split_auth(raw: str) -> Optional[tuple[str, str]]:
    if "/" not in raw:
        return None
    username, password = raw.split("/", 1)
    if not username or not password:
        return None
    return username, password


def resolve_neo4j_auth(
    compose_data: dict[str, Any],
    default_username: str = "neo4j",
    default_password: str = "neo4jpassword",
    strict: bool = False,
) -> tuple[str, str]:
    """Resolve Neo4j credentials.

    ``NEO4J_AUTH`` in the process environment wins; otherwise the neo4j
    service's ``NEO4J_AUTH`` entry in docker-compose is used.
    """
    defaults = (default_username, default_password)
    env_auth = os.getenv("NEO4J_AUTH")
    if env_auth:
        parsed = _split_auth(env_auth)
        if parsed is None:
            return _reject("NEO4J_AUTH must be '<username>/<password>'", strict, defaults)
        return parsed

    service = get_service_config(compose_data, "neo4j", strict=strict)
    env_items = service.get("environment", [])
    if isinstance(env_items, dict):
        entries = [f"{k}={v}" for k, v in env_items.items()]
    elif isinstance(env_items, list):
        entries = [str(item) for item in env_items]
    else:
        return _reject("neo4j.environment must be list or dict", strict, defaults)

    for entry in entries:
        if entry.startswith("NEO4J_AUTH="):
            parsed = _split_auth(entry.split("=", 1)[1])
            if parsed is None:
                return _reject(
                    "NEO4J_AUTH must be '<username>/<password>'", strict, defaults
                )
            return parsed

    return _reject("NEO4J_AUTH not found in neo4j service environment", strict, defaults)

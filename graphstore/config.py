"""
Configuration for the Neo4j graph store.

Connection settings come from the environment (a ``.env`` file is loaded at
import time via python-dotenv) and fall back to the neo4j service declared in
docker-compose.yml, so network configuration is never hardcoded.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from core.startup_config import (
    load_yaml_mapping,
    resolve_neo4j_auth,
    resolve_service_port,
    resolve_strict_config_validation,
)

logger = logging.getLogger(__name__)

load_dotenv()

# ---------------------------------------------------------------------------
# Infrastructure paths
# ---------------------------------------------------------------------------
DOCKER_COMPOSE_PATH: str = os.getenv("DOCKER_COMPOSE_PATH", "docker-compose.yml")

# ---------------------------------------------------------------------------
# Neo4j ingestion configuration
# ---------------------------------------------------------------------------
NEO4J_BATCH_SIZE: int = int(os.getenv("NEO4J_BATCH_SIZE", "500"))
NEO4J_CONNECTION_RETRIES: int = int(os.getenv("NEO4J_CONNECTION_RETRIES", "3"))
NEO4J_RETRY_MIN_WAIT: float = float(os.getenv("NEO4J_RETRY_MIN_WAIT", "1.0"))  # seconds
NEO4J_RETRY_MAX_WAIT: float = float(os.getenv("NEO4J_RETRY_MAX_WAIT", "10.0"))  # seconds
NEO4J_WRITE_RETRIES: int = int(os.getenv("NEO4J_WRITE_RETRIES", "3"))


@dataclass(frozen=True)
class Neo4jSettings:
    """Resolved connection settings."""

    uri: str
    username: str
    password: str
    database: str = "neo4j"


def resolve_neo4j_settings(
    compose_path: str = DOCKER_COMPOSE_PATH,
    strict: bool | None = None,
) -> Neo4jSettings:
    """Resolve Neo4j connection settings.

    ``NEO4J_URI`` in the environment wins over the docker-compose port
    mapping; credentials come from ``NEO4J_AUTH`` (env, then compose).

    Raises:
        ConfigValidationError: In strict mode, if docker-compose is missing
            or does not describe the neo4j service.
    """
    if strict is None:
        strict = resolve_strict_config_validation(default=False)

    env_uri = os.getenv("NEO4J_URI")
    compose = {} if env_uri and os.getenv("NEO4J_AUTH") else load_yaml_mapping(
        compose_path, strict=strict
    )

    if env_uri:
        uri = env_uri
    else:
        port = resolve_service_port(
            compose_data=compose,
            service_name="neo4j",
            container_port=7687,
            default_port=7687,
            strict=strict,
        )
        uri = f"bolt://127.0.0.1:{port}"

    username, password = resolve_neo4j_auth(compose_data=compose, strict=strict)
    database = os.getenv("NEO4J_DATABASE", "neo4j")

    logger.debug("Resolved Neo4j config: uri=%s, username=%s", uri, username)
    return Neo4jSettings(uri=uri, username=username, password=password, database=database)

"""Core shared contracts and utilities."""

from core.uri_contract import (
    ENTITY_URI_SEPARATOR,
    create_entity_uri,
    create_method_uri,
    create_stage_uri,
    create_type_uri,
    make_signature_hash,
    normalize_java_name,
    parse_entity_uri,
)
from core.structured_logging import (
    configure_structured_logging,
    get_phase,
    get_run_id,
    phase_scope,
    set_run_id,
)
from core.startup_config import (
    ConfigValidationError,
    load_yaml_mapping,
    resolve_allow_syntax_errors,
    resolve_max_workers,
    resolve_neo4j_auth,
    resolve_service_port,
    resolve_strict_config_validation,
)
from core.run_artifacts import final_status, write_run_report

__all__ = [
    "ENTITY_URI_SEPARATOR",
    "create_entity_uri",
    "create_method_uri",
    "create_stage_uri",
    "create_type_uri",
    "make_signature_hash",
    "normalize_java_name",
    "parse_entity_uri",
    "configure_structured_logging",
    "get_phase",
    "get_run_id",
    "phase_scope",
    "set_run_id",
    "ConfigValidationError",
    "load_yaml_mapping",
    "resolve_allow_syntax_errors",
    "resolve_max_workers",
    "resolve_neo4j_auth",
    "resolve_service_port",
    "resolve_strict_config_validation",
    "final_status",
    "write_run_report",
]

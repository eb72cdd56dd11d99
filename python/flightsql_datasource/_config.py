"""Runtime configuration for the Flight SQL datasource."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

DEFAULT_CONNECT_TIMEOUT_SEC = 5.0
DEFAULT_QUERY_TIMEOUT_SEC: Optional[float] = None
DEFAULT_BUCKET_HEADER = "bucket-name"


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    connect_timeout_sec: float
    query_timeout_sec: Optional[float]
    bucket_header: str


def _load_yaml_config() -> dict[str, Any]:
    """Attempt to load a YAML configuration file if available."""

    config_env = os.environ.get("FLIGHTSQL_DS_CONFIG")
    candidate_paths: list[Path] = []
    if config_env:
        candidate_paths.append(Path(config_env).expanduser())
    candidate_paths.append(Path.home() / ".config" / "flightsql-datasource" / "config.yaml")

    for path in candidate_paths:
        if not path.is_file():
            continue
        try:
            import yaml  # type: ignore
        except ImportError:  # pragma: no cover - optional dependency
            return {}
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)  # type: ignore[misc]
        if isinstance(data, dict):
            return data
    return {}


def _extract_datasource_section(raw: dict[str, Any]) -> dict[str, Any]:
    candidates = [
        raw.get("flightsql", {}).get("datasource", {}),
        raw.get("flightsql.datasource", {}),
    ]
    for candidate in candidates:
        if isinstance(candidate, dict) and candidate:
            return candidate
    return {}


def _env_override(key: str) -> str | None:
    return os.environ.get(f"FLIGHTSQL_DS_{key.upper()}")


def load_config() -> RuntimeConfig:
    """Load configuration from env variables or YAML."""

    yaml_config = _extract_datasource_section(_load_yaml_config())

    def resolve_float(key: str, default: Optional[float]) -> Optional[float]:
        env_value = _env_override(key)
        if env_value is not None:
            if env_value.strip().lower() in {"", "none", "off"}:
                return None
            try:
                return float(env_value)
            except ValueError:  # pragma: no cover - invalid env
                pass
        value = yaml_config.get(key, default)
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        try:
            return float(value)
        except (TypeError, ValueError):  # pragma: no cover - invalid YAML value
            return default

    def resolve_str(key: str, default: str) -> str:
        env_value = _env_override(key)
        if env_value:
            return env_value.strip().lower()
        value = yaml_config.get(key, default)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
        return default

    connect_timeout = resolve_float("connect_timeout_sec", DEFAULT_CONNECT_TIMEOUT_SEC)
    if connect_timeout is None or connect_timeout <= 0:
        connect_timeout = DEFAULT_CONNECT_TIMEOUT_SEC

    query_timeout = resolve_float("query_timeout_sec", DEFAULT_QUERY_TIMEOUT_SEC)
    if query_timeout is not None and query_timeout <= 0:
        query_timeout = None

    return RuntimeConfig(
        connect_timeout_sec=connect_timeout,
        query_timeout_sec=query_timeout,
        bucket_header=resolve_str("bucket_header", DEFAULT_BUCKET_HEADER),
    )

"""Connection settings persisted by the host for one datasource."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from .exceptions import ConfigurationError
from .utils import mask_token


@dataclass(frozen=True)
class ConnectionConfig:
    """Normalized & validated connection settings."""

    host: str = ""
    database: str = ""
    token: str = ""
    secure: bool = False

    @classmethod
    def from_json(cls, json_data: Union[bytes, str]) -> "ConnectionConfig":
        """
        Decode the host's JSON settings blob.

        Absent keys keep their defaults; present keys must have the declared
        JSON type (strings for host/database/token, a boolean for secure).

        Args:
            json_data: Raw settings document

        Returns:
            ConnectionConfig instance

        Raises:
            ConfigurationError: If the document is unparsable or mistyped
        """
        try:
            raw = json.loads(json_data or b"{}")
        except (TypeError, ValueError) as err:
            raise ConfigurationError(f"config: {err}") from err
        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"config: expected a JSON object, got {type(raw).__name__}"
            )
        return cls.from_mapping(raw)

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "ConnectionConfig":
        values: Dict[str, Any] = {}
        for key in ("host", "database", "token"):
            value = raw.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ConfigurationError(
                    f"config: '{key}' must be a string, got {type(value).__name__}"
                )
            values[key] = value

        secure = raw.get("secure")
        if secure is not None:
            if not isinstance(secure, bool):
                raise ConfigurationError(
                    f"config: 'secure' must be a boolean, got {type(secure).__name__}"
                )
            values["secure"] = secure

        return cls(**values)

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(host={self.host!r}, database={self.database!r}, "
            f"token={mask_token(self.token)!r}, secure={self.secure!r})"
        )

"""Request and response types exchanged with the visualization host."""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .exceptions import BadRequestError
from .frame import Frame


class Status(int, Enum):
    """Per-query outcome classification (HTTP-style codes)."""

    OK = 200
    BAD_REQUEST = 400
    INTERNAL = 500


class HealthStatus(str, Enum):
    OK = "OK"
    ERROR = "ERROR"


@dataclass
class CallContext:
    """
    Caller-owned deadline and cancellation for one host call.

    ``timeout`` bounds every Flight RPC made on behalf of the call; setting
    ``cancel_event`` aborts an in-progress stream between batches.
    """

    timeout: Optional[float] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()


@dataclass
class DataSourceInstanceSettings:
    json_data: Union[bytes, str] = b"{}"
    name: str = ""
    uid: str = ""


@dataclass
class DataQuery:
    """One query of a host request; ``json`` is the raw query payload."""

    ref_id: str
    json: Union[bytes, str] = b"{}"


@dataclass
class QueryDataRequest:
    queries: List[DataQuery] = field(default_factory=list)


@dataclass
class QueryModel:
    """Decoded query payload; timing hints are carried through unchanged."""

    ref_id: str = ""
    query_text: str = ""
    interval_ms: int = 0
    max_data_points: int = 0

    _KEYS = {
        "refId": ("ref_id", str),
        "queryText": ("query_text", str),
        "intervalMs": ("interval_ms", int),
        "maxDataPoints": ("max_data_points", int),
    }

    @classmethod
    def from_json(cls, payload: Union[bytes, str]) -> "QueryModel":
        """
        Decode a query payload.

        Unknown keys are ignored; known keys must carry their declared JSON
        type. Numbers are not coerced from strings.

        Args:
            payload: Raw JSON document for one query

        Returns:
            QueryModel instance

        Raises:
            BadRequestError: If the document is unparsable or mistyped
        """
        try:
            raw = json.loads(payload)
        except (TypeError, ValueError) as err:
            raise BadRequestError(f"unmarshal query request: {err}") from err
        if not isinstance(raw, dict):
            raise BadRequestError(
                f"unmarshal query request: expected a JSON object, got {type(raw).__name__}"
            )

        values: Dict[str, Any] = {}
        for key, (attr, expected) in cls._KEYS.items():
            value = raw.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, expected):
                raise BadRequestError(
                    f"unmarshal query request: '{key}' must be {_json_type_name(expected)}, "
                    f"got {type(value).__name__}"
                )
            values[attr] = value
        return cls(**values)


def _json_type_name(expected: type) -> str:
    return "a string" if expected is str else "an integer"


@dataclass
class DataResponse:
    """Outcome of one query: frames, plus an error when it failed (partially)."""

    frames: List[Frame] = field(default_factory=list)
    error: Optional[str] = None
    status: Status = Status.OK

    @classmethod
    def from_error(cls, status: Status, message: str) -> "DataResponse":
        return cls(error=message, status=status)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"frames": [frame.to_dict() for frame in self.frames]}
        if self.error is not None:
            result["error"] = self.error
            result["status"] = int(self.status)
        return result


@dataclass
class QueryDataResponse:
    responses: Dict[str, DataResponse] = field(default_factory=dict)


@dataclass
class CheckHealthResult:
    status: HealthStatus
    message: str

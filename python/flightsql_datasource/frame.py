"""Host-side table representation (data frames).

A frame is an ordered list of fields; each field owns an append-only list of
values of one host type. ``None`` marks a null cell.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FieldType(str, Enum):
    BOOL = "bool"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    TIME = "time"

    @property
    def json_type(self) -> str:
        if self is FieldType.BOOL:
            return "boolean"
        if self is FieldType.STRING:
            return "string"
        if self is FieldType.TIME:
            return "time"
        return "number"


@dataclass
class Field:
    name: str
    type: FieldType
    nullable: bool = True
    labels: Dict[str, str] = field(default_factory=dict)
    values: List[Any] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)

    def extend(self, values: List[Any]) -> None:
        self.values.extend(values)

    def to_dict(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.json_type,
            "typeInfo": {"frame": self.type.value, "nullable": self.nullable},
        }
        if self.labels:
            schema["labels"] = dict(self.labels)
        return schema

    def json_values(self) -> List[Any]:
        if self.type is not FieldType.TIME:
            return list(self.values)
        return [_epoch_millis(value) for value in self.values]


@dataclass
class FrameMeta:
    executed_query_string: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"executedQueryString": self.executed_query_string}


@dataclass
class Frame:
    """Result table assembled from one query's record batches."""

    name: str = ""
    fields: List[Field] = field(default_factory=list)
    meta: FrameMeta = field(default_factory=FrameMeta)

    def rows(self) -> int:
        if not self.fields:
            return 0
        return len(self.fields[0])

    def field_by_name(self, name: str) -> Optional[Field]:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        return None

    def column(self, index: int) -> List[Any]:
        return self.fields[index].values

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": {
                "name": self.name,
                "meta": self.meta.to_dict(),
                "fields": [f.to_dict() for f in self.fields],
            },
            "data": {"values": [f.json_values() for f in self.fields]},
        }


def _epoch_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return (value - _EPOCH) // timedelta(milliseconds=1)

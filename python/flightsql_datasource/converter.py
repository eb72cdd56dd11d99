"""Arrow record batch → frame conversion.

We map Arrow columns into frames ourselves instead of going through a generic
dataframe library: the frame type system and Arrow's logical types are
independent designs, so every supported Arrow type gets an explicit copier
that picks the frame field type and translates values (timestamps and dates
become timezone-aware ``datetime`` objects, union cells are rendered as text).
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import pyarrow as pa
import pyarrow.types as pat

from .exceptions import ConversionError
from .frame import Field, FieldType, Frame, FrameMeta

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# microseconds per timestamp unit; nanoseconds are truncated
_MICROS_PER_UNIT = {"s": 1_000_000, "ms": 1_000, "us": 1}

CopyFn = Callable[[pa.Array], List[Any]]


@dataclass(frozen=True)
class Conversion:
    field_type: FieldType
    copy: CopyFn


def logical_type_tag(arrow_type: pa.DataType) -> str:
    """Tag used to look up the conversion for an Arrow type."""
    if pat.is_timestamp(arrow_type):
        return "timestamp"
    if pat.is_date32(arrow_type):
        return "date32"
    if pat.is_date64(arrow_type):
        return "date64"
    if pat.is_union(arrow_type):
        return f"{arrow_type.mode}_union"
    return str(arrow_type)


def copy_values(array: pa.Array) -> List[Any]:
    return array.to_pylist()


def copy_timestamps(array: pa.Array) -> List[Optional[datetime]]:
    unit = array.type.unit
    raw = array.view(pa.int64()).to_pylist()
    values: List[Optional[datetime]] = []
    for value in raw:
        if value is None:
            values.append(None)
        elif unit == "ns":
            values.append(_EPOCH + timedelta(microseconds=value // 1_000))
        else:
            values.append(_EPOCH + timedelta(microseconds=value * _MICROS_PER_UNIT[unit]))
    return values


def copy_dates(array: pa.Array) -> List[Optional[datetime]]:
    values: List[Optional[datetime]] = []
    for value in array.to_pylist():
        if value is None:
            values.append(None)
        else:
            values.append(_midnight_utc(value))
    return values


def copy_union_as_text(array: pa.Array) -> List[Optional[str]]:
    return [_render(value) for value in array.to_pylist()]


def _midnight_utc(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _render(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def default_conversions() -> Dict[str, Conversion]:
    """Build the Arrow tag → conversion table."""
    return {
        "bool": Conversion(FieldType.BOOL, copy_values),
        "int8": Conversion(FieldType.INT8, copy_values),
        "int16": Conversion(FieldType.INT16, copy_values),
        "int32": Conversion(FieldType.INT32, copy_values),
        "int64": Conversion(FieldType.INT64, copy_values),
        "uint8": Conversion(FieldType.UINT8, copy_values),
        "uint16": Conversion(FieldType.UINT16, copy_values),
        "uint32": Conversion(FieldType.UINT32, copy_values),
        "uint64": Conversion(FieldType.UINT64, copy_values),
        "float": Conversion(FieldType.FLOAT32, copy_values),
        "double": Conversion(FieldType.FLOAT64, copy_values),
        "string": Conversion(FieldType.STRING, copy_values),
        "large_string": Conversion(FieldType.STRING, copy_values),
        "timestamp": Conversion(FieldType.TIME, copy_timestamps),
        "date32": Conversion(FieldType.TIME, copy_dates),
        "date64": Conversion(FieldType.TIME, copy_dates),
        "dense_union": Conversion(FieldType.STRING, copy_union_as_text),
    }


class ArrowFrameConverter:
    """
    Appends Arrow record batches into a frame, one batch at a time.

    The conversion table is fixed at construction; the converter holds no other
    state, so one instance may serve concurrent queries.
    """

    def __init__(self, conversions: Optional[Mapping[str, Conversion]] = None):
        self._conversions: Dict[str, Conversion] = dict(
            conversions if conversions is not None else default_conversions()
        )

    def resolve(self, arrow_field: pa.Field) -> Conversion:
        """
        Find the conversion for one schema field.

        Raises:
            ConversionError: If the field's logical type has no conversion
        """
        conversion = self._conversions.get(logical_type_tag(arrow_field.type))
        if conversion is None:
            raise ConversionError(arrow_field.name, str(arrow_field.type))
        return conversion

    def new_frame(self, schema: pa.Schema, sql: str) -> Frame:
        """
        Create an empty frame whose fields mirror ``schema``.

        Args:
            schema: Arrow schema of the stream
            sql: Statement recorded as the frame's executed query

        Returns:
            Frame with one empty field per column

        Raises:
            ConversionError: If a column has an unsupported logical type
        """
        fields = []
        for arrow_field in schema:
            conversion = self.resolve(arrow_field)
            fields.append(
                Field(
                    name=arrow_field.name,
                    type=conversion.field_type,
                    nullable=arrow_field.nullable,
                    labels=_decode_metadata(arrow_field.metadata),
                )
            )
        return Frame(fields=fields, meta=FrameMeta(executed_query_string=sql))

    def append(self, frame: Frame, batch: pa.RecordBatch) -> int:
        """
        Append every column of ``batch`` to the matching frame field.

        The batch is converted completely before any field grows, so a failing
        column never leaves the frame with ragged columns.

        Args:
            frame: Frame created by ``new_frame`` for the stream's schema
            batch: Next record batch from the stream

        Returns:
            Number of rows appended

        Raises:
            ConversionError: If the batch does not fit the frame
        """
        if batch.num_columns != len(frame.fields):
            raise ConversionError(
                "*",
                str(batch.schema),
                reason=f"batch has {batch.num_columns} columns, frame has {len(frame.fields)}",
            )

        converted: List[List[Any]] = []
        for index, target in enumerate(frame.fields):
            arrow_field = batch.schema.field(index)
            conversion = self.resolve(arrow_field)
            if conversion.field_type is not target.type:
                raise ConversionError(
                    arrow_field.name,
                    str(arrow_field.type),
                    reason=f"cannot append to {target.type.value} field",
                )
            try:
                converted.append(conversion.copy(batch.column(index)))
            except (OverflowError, ValueError) as err:
                raise ConversionError(
                    arrow_field.name, str(arrow_field.type), reason="value out of range"
                ) from err

        for target, values in zip(frame.fields, converted):
            target.extend(values)
        return batch.num_rows


def _decode_metadata(metadata: Optional[Mapping[bytes, bytes]]) -> Dict[str, str]:
    if not metadata:
        return {}
    return {
        key.decode("utf-8", errors="replace"): value.decode("utf-8", errors="replace")
        for key, value in metadata.items()
    }

"""Flight SQL command messages.

Flight SQL requests are protobuf messages packed into ``google.protobuf.Any``
and sent as the command of a ``FlightDescriptor``. pyarrow does not ship the
Flight SQL schema, so the few commands used here are declared from a
``FileDescriptorProto`` in a private descriptor pool.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

import pyarrow.flight as flight
from google.protobuf import any_pb2, descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "arrow.flight.protocol.sql"

_FieldProto = descriptor_pb2.FieldDescriptorProto

# name -> [(field name, number, type, label)]
_COMMANDS = {
    "CommandStatementQuery": [
        ("query", 1, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL),
        ("transaction_id", 2, _FieldProto.TYPE_BYTES, _FieldProto.LABEL_OPTIONAL),
    ],
    "CommandGetSqlInfo": [
        ("info", 1, _FieldProto.TYPE_UINT32, _FieldProto.LABEL_REPEATED),
    ],
    "CommandGetTables": [
        ("catalog", 1, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL),
        ("db_schema_filter_pattern", 2, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL),
        ("table_name_filter_pattern", 3, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL),
        ("table_types", 4, _FieldProto.TYPE_STRING, _FieldProto.LABEL_REPEATED),
        ("include_schema", 5, _FieldProto.TYPE_BOOL, _FieldProto.LABEL_OPTIONAL),
    ],
}


def _build_pool() -> descriptor_pool.DescriptorPool:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="flightsql_datasource/flight_sql_commands.proto",
        package=PACKAGE,
        syntax="proto3",
    )
    for message_name, fields in _COMMANDS.items():
        message = file_proto.message_type.add(name=message_name)
        for name, number, field_type, label in fields:
            message.field.add(name=name, number=number, type=field_type, label=label)

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return pool


_POOL = _build_pool()


def _message_class(name: str):
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


_MESSAGE_CLASSES = {
    f"{PACKAGE}.{name}": _message_class(name) for name in _COMMANDS
}

CommandStatementQuery = _MESSAGE_CLASSES[f"{PACKAGE}.CommandStatementQuery"]
CommandGetSqlInfo = _MESSAGE_CLASSES[f"{PACKAGE}.CommandGetSqlInfo"]
CommandGetTables = _MESSAGE_CLASSES[f"{PACKAGE}.CommandGetTables"]


def _descriptor(command) -> flight.FlightDescriptor:
    packed = any_pb2.Any()
    packed.Pack(command)
    return flight.FlightDescriptor.for_command(packed.SerializeToString())


def statement_query(query: str) -> flight.FlightDescriptor:
    return _descriptor(CommandStatementQuery(query=query))


def get_sql_info(info: Iterable[int] = ()) -> flight.FlightDescriptor:
    """Descriptor for CommandGetSqlInfo; an empty ``info`` requests everything."""
    return _descriptor(CommandGetSqlInfo(info=list(info)))


def get_tables(
    catalog: Optional[str] = None,
    db_schema_filter_pattern: Optional[str] = None,
    table_name_filter_pattern: Optional[str] = None,
    table_types: Sequence[str] = (),
    include_schema: bool = False,
) -> flight.FlightDescriptor:
    command = CommandGetTables(
        table_types=list(table_types),
        include_schema=include_schema,
    )
    if catalog is not None:
        command.catalog = catalog
    if db_schema_filter_pattern is not None:
        command.db_schema_filter_pattern = db_schema_filter_pattern
    if table_name_filter_pattern is not None:
        command.table_name_filter_pattern = table_name_filter_pattern
    return _descriptor(command)

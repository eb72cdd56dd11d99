from __future__ import annotations

import threading
import types
from typing import Callable, Dict, List, Optional

import pyarrow as pa
import pytest
from google.protobuf import any_pb2

from flightsql_datasource import _protocol
from flightsql_datasource._config import RuntimeConfig

_COMMAND_CLASSES = {
    cls.DESCRIPTOR.full_name: cls
    for cls in (
        _protocol.CommandStatementQuery,
        _protocol.CommandGetSqlInfo,
        _protocol.CommandGetTables,
    )
}


def unpack_command(payload: bytes):
    """Decode a Flight SQL descriptor command the way an engine would."""
    packed = any_pb2.Any()
    packed.ParseFromString(payload)
    message_cls = _COMMAND_CLASSES.get(packed.TypeName())
    if message_cls is None:
        raise ValueError(f"unknown Flight SQL command: {packed.type_url}")
    message = message_cls()
    packed.Unpack(message)
    return message


class FakeReader:
    """Stands in for a FlightStreamReader over a fixed list of batches."""

    def __init__(
        self,
        schema: pa.Schema,
        batches: List[pa.RecordBatch],
        fail_after: Optional[int] = None,
        error: Optional[Exception] = None,
    ):
        self._schema = schema
        self._batches = list(batches)
        self._fail_after = fail_after
        self._error = error
        self._position = 0
        self.cancelled = False

    @property
    def schema(self) -> pa.Schema:
        return self._schema

    def read_chunk(self):
        if self._fail_after is not None and self._position == self._fail_after:
            raise self._error
        if self._position >= len(self._batches):
            raise StopIteration
        batch = self._batches[self._position]
        self._position += 1
        return types.SimpleNamespace(data=batch, app_metadata=None)

    def cancel(self) -> None:
        self.cancelled = True


class FakeFlightSQLClient:
    """
    Records every call; plans and readers come from per-statement factories.

    ``responses`` maps SQL text to a callable returning a reader, or to an
    exception raised by ``execute``.
    """

    def __init__(self):
        self.responses: Dict[str, object] = {}
        self.endpoint_counts: Dict[str, int] = {}
        self.do_get_error: Optional[Exception] = None
        self.executed: List[str] = []
        self.do_get_calls: List[bytes] = []
        self.readers: List[FakeReader] = []
        self.metadata_calls: List[str] = []
        self.close_calls = 0
        self.close_error: Optional[Exception] = None
        self._lock = threading.Lock()
        self._tickets: Dict[bytes, Callable[[], FakeReader]] = {}

    def add_result(self, sql: str, table: pa.Table, max_chunksize: Optional[int] = None) -> None:
        batches = table.to_batches(max_chunksize=max_chunksize)
        self.responses[sql] = lambda: FakeReader(table.schema, batches)

    def add_reader(self, sql: str, factory: Callable[[], FakeReader]) -> None:
        self.responses[sql] = factory

    def fail(self, sql: str, error: Exception) -> None:
        self.responses[sql] = error

    def _plan_for(self, key: str) -> types.SimpleNamespace:
        response = self.responses.get(key)
        if isinstance(response, Exception):
            raise response
        ticket = key.encode()
        with self._lock:
            self._tickets[ticket] = response
        count = self.endpoint_counts.get(key, 1)
        return types.SimpleNamespace(
            endpoints=[types.SimpleNamespace(ticket=ticket) for _ in range(count)]
        )

    def execute(self, query: str, options=None):
        with self._lock:
            self.executed.append(query)
        return self._plan_for(query)

    def get_sql_info(self, info=(), options=None):
        with self._lock:
            self.metadata_calls.append("GetSqlInfo")
        return self._plan_for("GetSqlInfo")

    def get_tables(self, options=None, **_: object):
        with self._lock:
            self.metadata_calls.append("GetTables")
        return self._plan_for("GetTables")

    def do_get(self, ticket, options=None):
        with self._lock:
            self.do_get_calls.append(ticket)
        if self.do_get_error is not None:
            raise self.do_get_error
        reader = self._tickets[ticket]()
        with self._lock:
            self.readers.append(reader)
        return reader

    def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def fake_client() -> FakeFlightSQLClient:
    return FakeFlightSQLClient()


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        connect_timeout_sec=0.2,
        query_timeout_sec=None,
        bucket_header="bucket-name",
    )


@pytest.fixture
def select_one() -> pa.Table:
    return pa.table({"1": pa.array([1], type=pa.int64())})


@pytest.fixture
def reader_factory():
    return FakeReader


@pytest.fixture
def decode_command():
    return unpack_command

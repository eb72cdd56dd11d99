"""Flight SQL query execution: plan → single endpoint → streamed frame.

Every query follows the same strictly ordered protocol:

    1. attach the database name to the call headers
    2. submit the command, receiving a FlightInfo plan
    3. require exactly one endpoint in the plan
    4. open the record batch stream for that endpoint's ticket
    5. drain the stream into one frame, batch by batch
    6. release the stream on every exit path

Failures are returned as data on the ``DataResponse``, never raised, so one
query's failure cannot disturb its siblings. A failure while draining keeps the
rows converted so far and attaches the error to them.
"""

import logging
import time
from typing import Callable, List, Optional, Tuple

import pyarrow as pa
import pyarrow.flight as flight

from ._config import DEFAULT_BUCKET_HEADER
from .client import FlightSQLClient
from .converter import ArrowFrameConverter
from .exceptions import ConversionError, UnsupportedEndpointCountError
from .frame import Frame
from .metrics import MetricsCollector, QueryMetrics
from .models import CallContext, DataResponse, Status
from .utils import redact_bearer

logger = logging.getLogger("flightsql.datasource")

FLIGHT_ERRORS = (flight.FlightError, pa.ArrowException)

Submit = Callable[[flight.FlightCallOptions], flight.FlightInfo]

CANCELED = "context canceled"


def _flight_error(err: BaseException) -> DataResponse:
    return DataResponse.from_error(Status.INTERNAL, f"flightsql: {redact_bearer(str(err))}")


def _cancelled(context: Optional[CallContext]) -> bool:
    return context is not None and context.cancelled


class QueryExecutor:
    """
    Runs statements against one shared Flight SQL client.

    The executor keeps no per-query state; frames, readers and metrics are
    local to each call, so concurrent calls only share the thread-safe client
    and the read-only converter.
    """

    def __init__(
        self,
        client: FlightSQLClient,
        database: str,
        *,
        converter: Optional[ArrowFrameConverter] = None,
        bucket_header: str = DEFAULT_BUCKET_HEADER,
        default_timeout: Optional[float] = None,
    ):
        self._client = client
        self._database = database
        self._converter = converter or ArrowFrameConverter()
        self._bucket_header = bucket_header
        self._default_timeout = default_timeout

    def call_headers(self) -> List[Tuple[bytes, bytes]]:
        return [(self._bucket_header.encode("utf-8"), self._database.encode("utf-8"))]

    def timeout_for(self, context: Optional[CallContext] = None) -> Optional[float]:
        if context is not None and context.timeout is not None:
            return context.timeout
        return self._default_timeout

    def call_options(self, context: Optional[CallContext] = None) -> flight.FlightCallOptions:
        """Outgoing call options carrying the database header and deadline."""
        return flight.FlightCallOptions(
            timeout=self.timeout_for(context), headers=self.call_headers()
        )

    def query(
        self,
        sql: str,
        context: Optional[CallContext] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> DataResponse:
        """Execute SQL text and return its frame or a structured failure."""
        return self.run(
            lambda options: self._client.execute(sql, options),
            context,
            statement=sql,
            metrics=metrics,
        )

    def run(
        self,
        submit: Submit,
        context: Optional[CallContext] = None,
        *,
        statement: str = "",
        metrics: Optional[MetricsCollector] = None,
    ) -> DataResponse:
        """
        Drive the plan → endpoint → stream protocol for one command.

        Args:
            submit: Issues the plan request (GetFlightInfo) with the given options
            context: Caller deadline and cancellation
            statement: Text recorded on the frame and in the metrics
            metrics: Collector receiving this query's statistics

        Returns:
            DataResponse with one frame, an error, or both
        """
        collector = metrics if metrics is not None else MetricsCollector()
        record = QueryMetrics(statement=statement)
        started = time.perf_counter()
        try:
            response = self._run(submit, context, statement, record)
        finally:
            record.wall_time_ms = (time.perf_counter() - started) * 1000
        record.error = response.error
        collector.record(record)
        return response

    def _run(
        self,
        submit: Submit,
        context: Optional[CallContext],
        statement: str,
        record: QueryMetrics,
    ) -> DataResponse:
        options = self.call_options(context)

        if _cancelled(context):
            return DataResponse.from_error(Status.INTERNAL, CANCELED)
        try:
            info = submit(options)
        except FLIGHT_ERRORS as err:
            return _flight_error(err)

        endpoints = info.endpoints
        logger.debug(f"Plan for {statement!r} has {len(endpoints)} endpoint(s)")
        if len(endpoints) != 1:
            return DataResponse.from_error(
                Status.INTERNAL, str(UnsupportedEndpointCountError(len(endpoints)))
            )

        if _cancelled(context):
            return DataResponse.from_error(Status.INTERNAL, CANCELED)
        try:
            reader = self._client.do_get(endpoints[0].ticket, options)
        except FLIGHT_ERRORS as err:
            return _flight_error(err)

        drained = False
        try:
            try:
                schema = reader.schema
            except FLIGHT_ERRORS as err:
                return _flight_error(err)

            try:
                frame = self._converter.new_frame(schema, statement)
            except ConversionError as err:
                return DataResponse.from_error(Status.INTERNAL, str(err))

            response = DataResponse(frames=[frame])
            drained = self._drain(reader, frame, response, context, record)
            return response
        finally:
            self._release(reader, drained)

    def _drain(
        self,
        reader: flight.FlightStreamReader,
        frame: Frame,
        response: DataResponse,
        context: Optional[CallContext],
        record: QueryMetrics,
    ) -> bool:
        """Append batches until the stream ends; returns True when it was exhausted."""
        while True:
            if _cancelled(context):
                self._fail(response, CANCELED)
                return False
            try:
                chunk = reader.read_chunk()
            except StopIteration:
                return True
            except FLIGHT_ERRORS as err:
                # Engine-reported and transport failures are not told apart.
                self._fail(response, redact_bearer(str(err)))
                return False

            batch = chunk.data
            if batch is None:
                continue
            try:
                record.row_count += self._converter.append(frame, batch)
            except ConversionError as err:
                self._fail(response, str(err))
                return False
            record.batch_count += 1

    @staticmethod
    def _fail(response: DataResponse, message: str) -> None:
        response.error = message
        response.status = Status.INTERNAL

    @staticmethod
    def _release(reader: flight.FlightStreamReader, drained: bool) -> None:
        if drained:
            return
        try:
            reader.cancel()
        except FLIGHT_ERRORS as err:
            logger.debug(f"Ignoring error while cancelling stream: {err}")

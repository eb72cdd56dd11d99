"""Thin Flight SQL client over ``pyarrow.flight.FlightClient``."""

import logging
from typing import Iterable, Optional, Sequence

import pyarrow.flight as flight

from . import _protocol

logger = logging.getLogger("flightsql.datasource")


class FlightSQLClient:
    """
    Long-lived handle to a Flight SQL engine.

    Each method issues exactly one Flight RPC. The underlying gRPC channel is
    thread-safe, so one instance is shared by every query of a datasource.
    """

    def __init__(self, client: flight.FlightClient, location: str):
        self._client = client
        self.location = location

    def execute(self, query: str, options: Optional[flight.FlightCallOptions] = None) -> flight.FlightInfo:
        """Submit SQL text and return the query plan."""
        return self._client.get_flight_info(_protocol.statement_query(query), options)

    def get_sql_info(
        self,
        info: Iterable[int] = (),
        options: Optional[flight.FlightCallOptions] = None,
    ) -> flight.FlightInfo:
        """Request engine capability metadata (all of it when ``info`` is empty)."""
        return self._client.get_flight_info(_protocol.get_sql_info(info), options)

    def get_tables(
        self,
        options: Optional[flight.FlightCallOptions] = None,
        *,
        catalog: Optional[str] = None,
        db_schema_filter_pattern: Optional[str] = None,
        table_name_filter_pattern: Optional[str] = None,
        table_types: Sequence[str] = (),
    ) -> flight.FlightInfo:
        """Request the table listing."""
        descriptor = _protocol.get_tables(
            catalog=catalog,
            db_schema_filter_pattern=db_schema_filter_pattern,
            table_name_filter_pattern=table_name_filter_pattern,
            table_types=table_types,
        )
        return self._client.get_flight_info(descriptor, options)

    def do_get(
        self,
        ticket: flight.Ticket,
        options: Optional[flight.FlightCallOptions] = None,
    ) -> flight.FlightStreamReader:
        """Open the record batch stream for one endpoint ticket."""
        return self._client.do_get(ticket, options)

    def close(self) -> None:
        logger.debug(f"Closing Flight SQL client for {self.location}")
        self._client.close()

"""Flight SQL datasource: the object the visualization host talks to.

One instance owns one long-lived Flight SQL client for its whole lifetime.
The host calls ``query_data`` for batches of panel queries, ``check_health``
from the datasource settings page, ``resource_app`` for auxiliary metadata
endpoints and ``dispose`` when the instance is reaped.
"""

import logging
import threading
from typing import Optional

from ._config import RuntimeConfig, load_config
from .client import FlightSQLClient
from .exceptions import BadRequestError
from .executor import QueryExecutor
from .metrics import MetricsCollector
from .models import (
    CallContext,
    CheckHealthResult,
    DataResponse,
    DataSourceInstanceSettings,
    HealthStatus,
    QueryDataRequest,
    QueryDataResponse,
    QueryModel,
    Status,
)
from .settings import ConnectionConfig
from .transport import build_transport

logger = logging.getLogger("flightsql.datasource")

HEALTH_CHECK_QUERY = "select 1"


class FlightSQLDatasource:
    """Datasource instance bound to one Flight SQL engine and database."""

    def __init__(
        self,
        config: ConnectionConfig,
        client: FlightSQLClient,
        runtime_config: Optional[RuntimeConfig] = None,
    ):
        runtime_config = runtime_config or load_config()
        self.config = config
        self._client = client
        self._executor = QueryExecutor(
            client,
            config.database,
            bucket_header=runtime_config.bucket_header,
            default_timeout=runtime_config.query_timeout_sec,
        )
        self._resource_app = None
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def executor(self) -> QueryExecutor:
        return self._executor

    @property
    def resource_app(self):
        """ASGI app serving /get-sql-info, /get-tables and /get-columns."""
        if self._resource_app is None:
            from .resources import create_resource_app

            self._resource_app = create_resource_app(self)
        return self._resource_app

    def query_data(
        self,
        request: QueryDataRequest,
        context: Optional[CallContext] = None,
    ) -> QueryDataResponse:
        """
        Run every query of a host request.

        Each query gets its own response slot keyed by ref id; a malformed
        payload or a failed query only affects its own slot.

        Args:
            request: Batch of queries from the host
            context: Caller deadline and cancellation shared by the batch

        Returns:
            QueryDataResponse with one DataResponse per ref id
        """
        response = QueryDataResponse()
        collector = MetricsCollector()
        for query in request.queries:
            try:
                model = QueryModel.from_json(query.json)
            except BadRequestError as err:
                logger.warning(f"Rejected query {query.ref_id}: {err}")
                response.responses[query.ref_id] = DataResponse.from_error(
                    Status.BAD_REQUEST, str(err)
                )
                continue
            response.responses[query.ref_id] = self._executor.query(
                model.query_text, context, metrics=collector
            )
        collector.log_summary()
        return response

    def check_health(self, context: Optional[CallContext] = None) -> CheckHealthResult:
        """Run a trivial statement through the regular query path."""
        response = self._executor.query(HEALTH_CHECK_QUERY, context)
        if response.error is not None:
            return CheckHealthResult(
                status=HealthStatus.ERROR,
                message=f"ERROR: {response.error}",
            )
        return CheckHealthResult(status=HealthStatus.OK, message="OK")

    def get_sql_info(self, context: Optional[CallContext] = None) -> DataResponse:
        """Fetch every SqlInfo entry the engine reports."""
        return self._executor.run(
            lambda options: self._client.get_sql_info((), options),
            context,
            statement="GetSqlInfo",
        )

    def get_tables(self, context: Optional[CallContext] = None) -> DataResponse:
        return self._executor.run(
            lambda options: self._client.get_tables(options),
            context,
            statement="GetTables",
        )

    def get_columns(self, table: str, context: Optional[CallContext] = None) -> DataResponse:
        """Fetch one row of ``table`` so the frame schema lists its columns."""
        return self._executor.query(f"select * from {table} limit 1", context)

    def dispose(self) -> None:
        """Close the client once; close failures are logged, not raised."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._client.close()
        except Exception as err:
            logger.error(f"Failed to close Flight SQL client: {err}")


def new_datasource(
    settings: DataSourceInstanceSettings,
    runtime_config: Optional[RuntimeConfig] = None,
) -> FlightSQLDatasource:
    """
    Build a datasource from the host's persisted settings.

    Args:
        settings: Host settings whose JSON holds host, database, token, secure
        runtime_config: Timeouts and header names; loaded from env/YAML when omitted

    Returns:
        Connected FlightSQLDatasource

    Raises:
        ConfigurationError: If settings are malformed, trust roots are missing
            or the engine cannot be reached
    """
    runtime_config = runtime_config or load_config()
    config = ConnectionConfig.from_json(settings.json_data)
    client = build_transport(config, runtime_config)
    return FlightSQLDatasource(config, client, runtime_config)

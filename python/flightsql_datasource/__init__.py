"""Flight SQL datasource - SQL in, frames out, over Arrow Flight SQL.

This package lets a visualization host run SQL against an analytical engine
speaking Arrow Flight SQL and receive results as frames (typed, column-major
tables).

Pipeline:
    FlightSQLDatasource.query_data()
        ↓
    QueryExecutor (plan → single endpoint → stream)
        ↓
    FlightSQLClient (pyarrow.flight, bearer token middleware, TLS)
        ↓
    ArrowFrameConverter (record batches → frame fields)

Usage:
    from flightsql_datasource import (
        DataQuery, DataSourceInstanceSettings, QueryDataRequest, new_datasource,
    )

    settings = DataSourceInstanceSettings(
        json_data=b'{"host": "localhost:8082", "database": "metrics", '
                  b'"token": "secret", "secure": false}'
    )
    datasource = new_datasource(settings)

    response = datasource.query_data(QueryDataRequest(queries=[
        DataQuery(ref_id="A", json=b'{"queryText": "select * from cpu limit 10"}'),
    ]))
    frame = response.responses["A"].frames[0]

    datasource.dispose()
"""

import logging

from .converter import ArrowFrameConverter
from .datasource import FlightSQLDatasource, new_datasource
from .exceptions import (
    FlightSQLDatasourceError,
    ConfigurationError,
    BadRequestError,
    UnsupportedEndpointCountError,
    ConversionError,
)
from .executor import QueryExecutor
from .frame import Field, FieldType, Frame
from .models import (
    CallContext,
    CheckHealthResult,
    DataQuery,
    DataResponse,
    DataSourceInstanceSettings,
    HealthStatus,
    QueryDataRequest,
    QueryDataResponse,
    Status,
)
from .settings import ConnectionConfig

__all__ = [
    # Datasource lifecycle
    "FlightSQLDatasource",
    "new_datasource",
    "ConnectionConfig",

    # Pipeline
    "QueryExecutor",
    "ArrowFrameConverter",

    # Host types
    "CallContext",
    "CheckHealthResult",
    "DataQuery",
    "DataResponse",
    "DataSourceInstanceSettings",
    "Field",
    "FieldType",
    "Frame",
    "HealthStatus",
    "QueryDataRequest",
    "QueryDataResponse",
    "Status",

    # Exceptions
    "FlightSQLDatasourceError",
    "ConfigurationError",
    "BadRequestError",
    "UnsupportedEndpointCountError",
    "ConversionError",
]

# Set up logging
logger = logging.getLogger("flightsql.datasource")
logger.setLevel(logging.INFO)

# Add console handler if not already added
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

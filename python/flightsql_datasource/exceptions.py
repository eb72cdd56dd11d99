"""Custom exceptions for the Flight SQL datasource."""


class FlightSQLDatasourceError(Exception):
    """Base exception for Flight SQL datasource errors."""
    pass


class ConfigurationError(FlightSQLDatasourceError):
    """Raised when connection settings or the host environment are unusable."""
    pass


class BadRequestError(FlightSQLDatasourceError):
    """Raised when a per-query payload cannot be decoded."""
    pass


class UnsupportedEndpointCountError(FlightSQLDatasourceError):
    """Raised when a query plan does not carry exactly one endpoint."""

    def __init__(self, count: int):
        super().__init__(f"unsupported endpoint count in response: {count}")
        self.count = count


class ConversionError(FlightSQLDatasourceError):
    """Raised when an Arrow column cannot be copied into a frame field."""

    def __init__(self, column: str, arrow_type: str, reason: str = "unsupported type"):
        super().__init__(f"column '{column}': {reason}: {arrow_type}")
        self.column = column
        self.arrow_type = arrow_type

"""Transport construction: TLS selection, credentials and blocking connect."""

import logging
import ssl
import time
from pathlib import Path
from typing import Callable, Optional

import pyarrow as pa
import pyarrow.flight as flight

from ._config import RuntimeConfig, load_config
from .client import FlightSQLClient
from .credentials import BearerToken, BearerTokenMiddlewareFactory, credential_for
from .exceptions import ConfigurationError
from .settings import ConnectionConfig
from .utils import mask_token

logger = logging.getLogger("flightsql.datasource")

_PLAINTEXT_SCHEMES = ("grpc://", "grpc+tcp://", "grpc+unix://")
_POLL_INTERVAL_SEC = 0.025


def load_system_trust_roots() -> bytes:
    """
    Load the host's trusted root certificates as a PEM bundle.

    Returns:
        PEM-encoded certificates

    Raises:
        ConfigurationError: If no system root certificates can be found
    """
    paths = ssl.get_default_verify_paths()
    try:
        if paths.cafile and Path(paths.cafile).is_file():
            return Path(paths.cafile).read_bytes()

        if paths.capath and Path(paths.capath).is_dir():
            bundle = bytearray()
            for cert_path in sorted(Path(paths.capath).iterdir()):
                if not cert_path.is_file():
                    continue
                data = cert_path.read_bytes()
                if b"-----BEGIN CERTIFICATE-----" in data:
                    bundle += data.rstrip(b"\n") + b"\n"
            if bundle:
                return bytes(bundle)
    except OSError as err:
        raise ConfigurationError(f"x509: {err}") from err

    raise ConfigurationError("x509: no system root certificates available")


def location_for(host: str, secure: bool) -> str:
    if "://" in host:
        return host
    scheme = "grpc+tls" if secure else "grpc+tcp"
    return f"{scheme}://{host}"


def _check_credential(provider: BearerToken, location: str) -> None:
    if provider.require_transport_security() and location.startswith(_PLAINTEXT_SCHEMES):
        raise ConfigurationError(
            f"flightsql: credentials require transport security but {location} is not TLS"
        )


def _wait_until_ready(client: flight.FlightClient, location: str, timeout: float) -> None:
    """Block until the engine answers on the channel or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            options = flight.FlightCallOptions(timeout=timeout)
            for _ in client.list_flights(options=options):
                break
        except (flight.FlightUnavailableError, flight.FlightTimedOutError) as err:
            if time.monotonic() >= deadline:
                raise ConfigurationError(f"flightsql: {err}") from err
            time.sleep(_POLL_INTERVAL_SEC)
            continue
        except (flight.FlightError, NotImplementedError):
            # Any other answer means the engine is reachable.
            pass
        return


def build_transport(
    config: ConnectionConfig,
    runtime_config: Optional[RuntimeConfig] = None,
    *,
    client_factory: Callable[..., flight.FlightClient] = flight.FlightClient,
    trust_roots: Callable[[], bytes] = load_system_trust_roots,
) -> FlightSQLClient:
    """
    Open the long-lived Flight SQL channel described by ``config``.

    Args:
        config: Connection settings
        runtime_config: Timeouts; loaded from env/YAML when omitted
        client_factory: Constructor for the underlying Flight client
        trust_roots: Loader for the TLS root certificate bundle

    Returns:
        Connected FlightSQLClient

    Raises:
        ConfigurationError: If trust roots are missing, the credential does not
            match the channel, or the engine cannot be reached
    """
    runtime_config = runtime_config or load_config()
    provider = credential_for(config.token, config.secure)
    location = location_for(config.host, config.secure)
    _check_credential(provider, location)

    kwargs = {"middleware": [BearerTokenMiddlewareFactory(provider)]}
    if config.secure:
        kwargs["tls_root_certs"] = trust_roots()

    logger.info(
        f"Connecting to {location} (secure={config.secure}, "
        f"database={config.database!r}, token={mask_token(config.token)})"
    )

    try:
        client = client_factory(location, **kwargs)
    except (flight.FlightError, pa.ArrowException) as err:
        raise ConfigurationError(f"flightsql: {err}") from err

    try:
        _wait_until_ready(client, location, runtime_config.connect_timeout_sec)
    except ConfigurationError:
        client.close()
        raise

    logger.info(f"Connected to {location}")
    return FlightSQLClient(client, location)

"""Per-call bearer credentials for Flight SQL transports.

A credential provider produces the metadata attached to every outgoing call.
The secure variant may only travel over TLS; the insecure variant is meant for
local and development engines reached over plaintext gRPC.
"""

from __future__ import annotations

from typing import Any, Dict

import pyarrow.flight as flight

AUTHORIZATION_HEADER = "authorization"


class BearerToken:
    """Bearer credential that requires an encrypted transport."""

    def __init__(self, token: str):
        self._token = token

    def get_request_metadata(self, context: Any = None) -> Dict[str, str]:
        return {AUTHORIZATION_HEADER: "Bearer " + self._token}

    def require_transport_security(self) -> bool:
        return True


class InsecureBearerToken(BearerToken):
    """Bearer credential usable over an unencrypted channel."""

    def require_transport_security(self) -> bool:
        return False


def credential_for(token: str, secure: bool) -> BearerToken:
    """Pick the credential variant matching the transport security flag."""
    if secure:
        return BearerToken(token)
    return InsecureBearerToken(token)


class BearerTokenMiddleware(flight.ClientMiddleware):
    """Injects the provider's metadata into one outgoing call."""

    def __init__(self, provider: BearerToken, info: Any):
        super().__init__()
        self._provider = provider
        self._info = info

    def sending_headers(self) -> Dict[str, str]:
        return self._provider.get_request_metadata(self._info)


class BearerTokenMiddlewareFactory(flight.ClientMiddlewareFactory):
    """Adapts a credential provider to pyarrow's client middleware hook."""

    def __init__(self, provider: BearerToken):
        super().__init__()
        self.provider = provider

    def start_call(self, info: Any) -> BearerTokenMiddleware:
        return BearerTokenMiddleware(self.provider, info)

# =============================================================================
# Launcher client: session owner and request executor
# =============================================================================
"""
GatewayClient owns:
  - the SessionStore (token, shared key, nonce)
  - an httpx.Client (timeouts, proxies and cancellation live there)
  - the RequestBuilder / ResponseClassifier strategies

Usage:

    with GatewayClient(load_config_from_env()) as client:
        client.ensure_authenticated(AppInfo(name=..., id=..., version=..., vendor=...))
        resp = client.do(GatewayRequest(path="/nfs/directory/%2F/false", json_response=DirResponse))

Persist SessionConfig.from_client(client) to skip the handshake next run.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import httpx

from ..crypto_utils import EnvelopeCodec
from ..errors import TransportError
from .auth import AppInfo
from .auth import ensure_authenticated as _ensure_authenticated
from .auth import is_session_valid as _is_session_valid
from .session import DEFAULT_BASE_URL, Session, SessionConfig, SessionStore
from .transport import (
    DefaultRequestBuilder,
    DefaultResponseClassifier,
    GatewayRequest,
    GatewayResponse,
    RequestBuilder,
    ResponseClassifier,
)

_logger = logging.getLogger(__name__)


class GatewayClient:
    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout_s: Optional[float] = 30.0,
        request_builder: Optional[RequestBuilder] = None,
        response_classifier: Optional[ResponseClassifier] = None,
        logger: Optional[logging.Logger] = None,
        log_bodies: bool = False,
    ):
        config = config or SessionConfig()
        self.base_url = config.base_url or DEFAULT_BASE_URL
        self.sessions = SessionStore(config.to_session())

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=timeout_s)

        self.request_builder: RequestBuilder = request_builder or DefaultRequestBuilder()
        self.response_classifier: ResponseClassifier = response_classifier or DefaultResponseClassifier()

        self.logger = logger or _logger
        # Plaintext bodies are only logged on request (they may hold user data)
        self.log_bodies = log_bodies

    # ----------------------------
    # Session access
    # ----------------------------

    @property
    def session(self) -> Session:
        return self.sessions.current

    def codec(self) -> EnvelopeCodec:
        return EnvelopeCodec.for_session(self.session)

    def config(self) -> SessionConfig:
        return SessionConfig.from_client(self)

    # ----------------------------
    # Calls
    # ----------------------------

    def do(self, request: GatewayRequest) -> GatewayResponse:
        """
        Execute one logical call.

        Raises APIError for non-2xx, TransportError for connection failures,
        DecryptError when a response does not open under the session key and
        ResponseDecodeError when requested JSON does not decode.
        """
        http_request = self.request_builder.build(self, request)
        try:
            http_response = self.http_client.send(http_request)
        except httpx.HTTPError as e:
            raise TransportError(f"{request.method} {request.path} failed: {type(e).__name__}: {e}") from e
        return self.response_classifier.classify(self, http_response, request)

    # ----------------------------
    # Authentication
    # ----------------------------

    def is_session_valid(self) -> bool:
        return _is_session_valid(self)

    def ensure_authenticated(self, app: AppInfo, permissions: Iterable[str] = ()) -> Session:
        return _ensure_authenticated(self, app, permissions)

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def close(self) -> None:
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

# =============================================================================
# Error taxonomy for the launcher client
# =============================================================================
"""
Every failure raised by safe_tooling derives from GatewayError.

- RandomSourceError      the OS random source failed while creating key material
- DecryptError           an envelope did not authenticate under the session key
- SessionDecryptError    the handshake key blob did not authenticate
- SessionNotEstablished  the codec was used without a populated session
- APIError               any non-2xx response (status + body)
- AuthDenied             the launcher user rejected the handshake (HTTP 401)
- TransportError         connection level failure from the HTTP transport
- ResponseDecodeError    JSON (or base64 payload) could not be decoded
- RequestBuildError      the request could not be turned into an HTTP request

Nothing in this package retries. Callers decide whether to clear the session
and run a fresh handshake.
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    pass


class RandomSourceError(GatewayError):
    pass


class DecryptError(GatewayError):
    pass


class SessionDecryptError(DecryptError):
    pass


class SessionNotEstablished(GatewayError, RuntimeError):
    pass


class APIError(GatewayError):
    """Raised for every response whose status falls outside 200-299."""

    def __init__(self, status_code: int, body: bytes = b"", headers: Optional[dict[str, str]] = None):
        self.status_code = int(status_code)
        self.body = bytes(body or b"")
        self.headers = dict(headers or {})
        super().__init__(str(self))

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        return f"Server error {self.status_code}: {self.text}"


class AuthDenied(APIError):
    def __str__(self) -> str:
        return "Auth denied"


class TransportError(GatewayError):
    pass


class ResponseDecodeError(GatewayError):
    pass


class RequestBuildError(GatewayError, ValueError):
    pass

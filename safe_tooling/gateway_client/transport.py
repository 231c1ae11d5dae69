# =============================================================================
# Request building and response classification for launcher calls
# =============================================================================
"""
One logical call (GatewayRequest) goes through two pluggable strategies:

1) RequestBuilder turns it into an httpx.Request:
   - URL = base URL + caller path (segments percent-decoded, then re-encoded)
   - json_body wins over raw_body
   - body encrypted to base64 text unless skip_encryption
   - bearer token unless skip_auth
   - query string replaced by its encrypted, escaped base64 unless skip_encryption

2) ResponseClassifier turns the httpx.Response into a GatewayResponse:
   - decrypt the body unless it is a plaintext sentinel for its status
   - bodies that are not base64 pass through unchanged
   - non-2xx becomes APIError (after decryption, so the body is readable)
   - optional JSON decoding into the caller's type

Alternate transports and tests can swap either strategy on the client.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable
from urllib.parse import quote, quote_plus, unquote_plus, urlencode

import httpx
from pydantic import TypeAdapter, ValidationError

from ..crypto_utils import b64_decode
from ..errors import APIError, RequestBuildError, ResponseDecodeError
from .wire import json_bytes

if TYPE_CHECKING:
    from .client import GatewayClient


HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

QueryPairs = Sequence[Tuple[str, Any]]
QueryParams = Union[Mapping[str, Any], QueryPairs]


# The launcher sends these trivial replies without encrypting them.
# A stored value equal to one of these literals cannot be told apart
# from the sentinel (e.g. a file containing base64 "OK").
PLAINTEXT_SENTINELS: dict[int, bytes] = {
    200: b"OK",
    202: b"Accepted",
    500: b"Server Error",
}


# ----------------------------
# Request / response values
# ----------------------------

@dataclass
class GatewayRequest:
    path: str
    method: HttpMethod = "GET"
    json_body: Optional[Any] = None
    raw_body: Optional[bytes] = None  # b"" is still a (zero length) body
    query: Optional[QueryParams] = None

    skip_encryption: bool = False
    skip_auth: bool = False

    # Type to decode a non-empty 2xx body into (pydantic model, list[str], dict, ...)
    json_response: Optional[Any] = None


@dataclass
class GatewayResponse:
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""
    data: Optional[Any] = None  # decoded JSON, when json_response was requested

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header_int(self, name: str) -> int:
        try:
            return int(self.headers.get(name, ""))
        except ValueError:
            return 0


# ----------------------------
# Strategy interfaces
# ----------------------------

@runtime_checkable
class RequestBuilder(Protocol):
    def build(self, client: "GatewayClient", request: GatewayRequest) -> httpx.Request: ...


@runtime_checkable
class ResponseClassifier(Protocol):
    def classify(
        self,
        client: "GatewayClient",
        response: httpx.Response,
        request: GatewayRequest,
    ) -> GatewayResponse: ...


# ----------------------------
# URL helpers
# ----------------------------

def join_url_path(base_url: str, path: str) -> str:
    """
    Join base URL and caller path.

    The caller path is split on literal "/" first, so escaped slashes inside a
    segment (an NFS file path such as "%2Fdir%2Ffile.txt") stay escaped. Each
    segment is decoded and re-encoded so "+", "%20" and " " all end up as "%20".
    The path is trusted: ".." segments are not resolved.
    """
    try:
        base = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise RequestBuildError(f"Invalid launcher base URL: {e}") from e
    if not base.scheme or not base.host:
        raise RequestBuildError(f"Invalid launcher base URL: {base_url!r}")

    segments = path.lstrip("/").split("/")
    try:
        encoded = "/".join(quote(unquote_plus(s, errors="strict"), safe="") for s in segments)
    except UnicodeDecodeError as e:
        raise RequestBuildError(f"Unable to unescape given path: {e}") from e

    base_path = base.raw_path.split(b"?", 1)[0].decode("ascii").rstrip("/")
    origin = f"{base.scheme}://{base.netloc.decode('ascii')}"
    return f"{origin}{base_path}/{encoded}"


def encode_query(query: Optional[QueryParams]) -> str:
    """
    application/x-www-form-urlencoded, keys sorted, None values dropped.
    Sequence values (or repeated pair keys) produce repeated keys.
    """
    if not query:
        return ""
    items = query.items() if isinstance(query, Mapping) else query

    grouped: dict[str, list[str]] = {}
    for k, v in items:
        if v is None:
            continue
        if isinstance(v, (list, tuple)):
            grouped.setdefault(str(k), []).extend(str(x) for x in v)
        else:
            grouped.setdefault(str(k), []).append(str(v))

    pairs = [(k, v) for k in sorted(grouped) for v in grouped[k]]
    return urlencode(pairs)


# ----------------------------
# Default strategies
# ----------------------------

class DefaultRequestBuilder:
    def build(self, client: "GatewayClient", request: GatewayRequest) -> httpx.Request:
        url = join_url_path(client.base_url, request.path)
        raw_query = encode_query(request.query)
        headers: dict[str, str] = {}
        session = client.session
        # Every encrypted call needs a session, with or without a body
        codec = None if request.skip_encryption else client.codec()

        client.logger.debug("Calling %s %s", request.method, url)
        if raw_query and client.log_bodies:
            client.logger.debug("REQ QUERY: %s", raw_query)

        content: Optional[bytes] = None
        body = request.raw_body
        if request.json_body is not None:
            try:
                body = json_bytes(request.json_body)
            except (TypeError, ValueError) as e:
                raise RequestBuildError(f"Unable to JSON marshal body: {e}") from e

        if body is not None:
            if client.log_bodies:
                client.logger.debug("REQ BODY: %s", body.decode("utf-8", errors="replace"))
            if codec is not None:
                content = codec.seal_text(body).encode("utf-8")
                headers["Content-Type"] = "text/plain"
            else:
                content = bytes(body)
                headers["Content-Type"] = "application/json" if request.json_body is not None else "text/plain"

        if session.token and not request.skip_auth:
            headers["Authorization"] = f"Bearer {session.token}"

        if raw_query:
            if codec is not None:
                raw_query = quote_plus(codec.seal_text(raw_query.encode("utf-8")))
            url = f"{url}?{raw_query}"

        try:
            return client.http_client.build_request(request.method, url, headers=headers, content=content)
        except httpx.InvalidURL as e:
            raise RequestBuildError(f"Invalid request URL {url!r}: {e}") from e


class DefaultResponseClassifier:
    def __init__(self, sentinels: Optional[Mapping[int, bytes]] = None):
        self.sentinels = dict(PLAINTEXT_SENTINELS if sentinels is None else sentinels)

    def is_sentinel(self, status_code: int, body: bytes) -> bool:
        expected = self.sentinels.get(status_code)
        return expected is not None and body == expected

    def plaintext_body(self, client: "GatewayClient", status_code: int, body: bytes) -> bytes:
        if not body or self.is_sentinel(status_code, body):
            return body
        try:
            # line breaks inside an envelope are not part of the base64 payload
            ciphertext = b64_decode(body.replace(b"\r", b"").replace(b"\n", b""))
        except (binascii.Error, ValueError):
            # Not an envelope; the launcher answered in plaintext
            return body
        return client.codec().decrypt(ciphertext)

    def classify(
        self,
        client: "GatewayClient",
        response: httpx.Response,
        request: GatewayRequest,
    ) -> GatewayResponse:
        body = response.content
        if not request.skip_encryption:
            body = self.plaintext_body(client, response.status_code, body)

        if client.log_bodies:
            client.logger.debug("RESP BODY: %s", body.decode("utf-8", errors="replace"))

        out = GatewayResponse(status_code=response.status_code, headers=response.headers, body=body)
        if not out.ok:
            raise APIError(out.status_code, out.body, headers=dict(response.headers))

        if request.json_response is not None and out.body:
            try:
                out.data = TypeAdapter(request.json_response).validate_json(out.body)
            except ValidationError as e:
                raise ResponseDecodeError(f"Unable to unmarshal JSON: {e}") from e
        return out

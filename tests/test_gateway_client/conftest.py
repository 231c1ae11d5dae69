from __future__ import annotations

import base64
import json
import os
from typing import Callable, Optional
from urllib.parse import parse_qs, unquote_plus

import httpx
import pytest
from nacl.public import Box, PrivateKey, PublicKey

import sys
target_path = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), "../.."))
if target_path not in sys.path:
    sys.path.insert(0, target_path)

from safe_tooling.crypto_utils import EnvelopeCodec
from safe_tooling.errors import DecryptError
from safe_tooling.gateway_client import AppInfo, GatewayClient, Session, SessionConfig


APP = AppInfo(
    name="SAFE Client Tests",
    id="safe-tooling-tests.example.net",
    version="0.0.1",
    vendor="tests",
)


# -----------------------------------------------------------------------------
# Fake launcher: handshake + a tiny file store + name service, over MockTransport
# -----------------------------------------------------------------------------

def _text(status: int, body: bytes | str, headers: Optional[dict] = None) -> httpx.Response:
    content = body.encode("utf-8") if isinstance(body, str) else body
    return httpx.Response(status, content=content, headers={"Content-Type": "text/plain", **(headers or {})})


class FakeLauncher:
    """
    Behaves like the local launcher:
      - POST /auth boxes shared_key(32) || session_nonce(32) for the client key
      - GET /auth answers 200 for live tokens, 401 otherwise
      - data calls expect envelope bodies and envelope query strings
      - trivial replies are the plaintext sentinels ("OK")
    """

    def __init__(self) -> None:
        self.server_key = PrivateKey.generate()
        self.sessions: dict[str, EnvelopeCodec] = {}
        self.session_material: dict[str, tuple[bytes, bytes]] = {}
        self.files: dict[tuple[str, bool], bytes] = {}
        self.requests: list[httpx.Request] = []
        self.deny_auth = False
        self.tamper_key_blob = False
        self.auth_status: Optional[int] = None
        self._token_seq = 0

    # -- helpers --------------------------------------------------------------

    def revoke_all(self) -> None:
        self.sessions.clear()

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    @staticmethod
    def segments(request: httpx.Request) -> list[str]:
        raw = request.url.raw_path.split(b"?", 1)[0].decode("ascii")
        return [unquote_plus(s) for s in raw.strip("/").split("/")]

    def _codec_for(self, request: httpx.Request) -> Optional[EnvelopeCodec]:
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer "):
            return None
        return self.sessions.get(auth[len("Bearer "):])

    @staticmethod
    def _query(request: httpx.Request, codec: Optional[EnvelopeCodec]) -> dict[str, str]:
        raw = request.url.query.decode("ascii")
        if not raw:
            return {}
        if codec is not None:
            raw = codec.open_text(unquote_plus(raw)).decode("utf-8")
        return {k: v[-1] for k, v in parse_qs(raw).items()}

    # -- handshake ------------------------------------------------------------

    def _auth(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            if self._codec_for(request) is None:
                return _text(401, "Unauthorized")
            return _text(200, "OK")

        if self.auth_status is not None:
            return _text(self.auth_status, "launcher unavailable")
        if self.deny_auth:
            return _text(401, "Unauthorized")

        doc = json.loads(request.content)
        assert isinstance(doc["permissions"], list)
        client_pub = base64.b64decode(doc["publicKey"])
        nonce = base64.b64decode(doc["nonce"])

        shared_key = os.urandom(32)
        session_nonce = os.urandom(32)
        blob = Box(self.server_key, PublicKey(client_pub)).encrypt(shared_key + session_nonce, nonce).ciphertext
        if self.tamper_key_blob:
            blob = bytes([blob[0] ^ 0x01]) + blob[1:]

        self._token_seq += 1
        token = f"token-{self._token_seq}"
        self.sessions[token] = EnvelopeCodec(shared_key, session_nonce)
        self.session_material[token] = (shared_key, session_nonce)

        return httpx.Response(200, json={
            "token": token,
            "encryptedKey": base64.b64encode(blob).decode("ascii"),
            "publicKey": base64.b64encode(bytes(self.server_key.public_key)).decode("ascii"),
        })

    # -- file store -----------------------------------------------------------

    def _nfs_file(self, request: httpx.Request, codec: EnvelopeCodec, segs: list[str]) -> httpx.Response:
        if request.method == "POST" and segs == ["nfs", "file"]:
            doc = json.loads(codec.open_text(request.content))
            self.files[(doc["filePath"], bool(doc["isPathShared"]))] = b""
            return _text(200, "OK")

        key = (segs[2], segs[3] == "true")
        if key not in self.files:
            return _text(404, codec.seal_text(b"File not found"))
        q = self._query(request, codec)

        if request.method == "PUT":
            data = base64.b64decode(codec.open_text(request.content))
            offset = int(q.get("offset", "0"))
            current = self.files[key]
            self.files[key] = current[:offset] + data + current[offset + len(data):]
            return _text(200, "OK")

        if request.method == "GET":
            offset = int(q.get("offset", "0"))
            length = int(q["length"]) if "length" in q else None
            content = self.files[key]
            chunk = content[offset:] if length is None else content[offset:offset + length]
            return _text(200, codec.seal_text(base64.b64encode(chunk)))

        if request.method == "DELETE":
            del self.files[key]
            return _text(200, "OK")

        return _text(405, "Method not allowed")

    def _nfs_directory(self, request: httpx.Request, codec: EnvelopeCodec, segs: list[str]) -> httpx.Response:
        doc = {
            "info": {"name": segs[2].strip("/"), "isPrivate": True, "isVersioned": False,
                     "createdOn": 1460000000000, "modifiedOn": 1460000001000, "metadata": ""},
            "files": [{"name": path.strip("/"), "size": len(data), "createdOn": 1460000000000,
                       "modifiedOn": 1460000000000, "metadata": ""}
                      for (path, _shared), data in sorted(self.files.items())],
            "subDirectories": [
                {"name": "zeta", "isPrivate": False, "isVersioned": True,
                 "createdOn": 1460000000000, "modifiedOn": 1460000000000, "metadata": ""},
                {"name": "alpha", "isPrivate": True, "isVersioned": False,
                 "createdOn": 1460000000000, "modifiedOn": 1460000002000, "metadata": ""},
            ],
        }
        return _text(200, codec.seal_text(json.dumps(doc).encode("utf-8")))

    # -- name service ---------------------------------------------------------

    def _dns(self, request: httpx.Request, segs: list[str]) -> httpx.Response:
        if request.method == "GET" and len(segs) == 4:
            # public file lookup: plaintext, unauthenticated
            return httpx.Response(200, content=b"<h1>home</h1>", headers={
                "Content-Type": "text/html",
                "file-name": segs[3],
                "file-size": "13",
                "file-created-time": "1460000000000",
                "file-modified-time": "not-a-number",
                "file-metadata": "undefined",
            })
        if request.method == "GET" and len(segs) == 3:
            # service home directory: plaintext JSON, unauthenticated
            return httpx.Response(200, json={
                "info": {"name": "www", "isPrivate": False, "isVersioned": False,
                         "createdOn": 1460000000000, "modifiedOn": 1460000000000, "metadata": ""},
                "files": [{"name": "index.html", "size": 13, "createdOn": 1460000000000,
                           "modifiedOn": 1460000000000, "metadata": ""}],
                "subDirectories": [],
            })

        codec = self._codec_for(request)
        if codec is None:
            return _text(401, "Unauthorized")
        if request.method == "GET" and len(segs) == 1:
            return _text(200, codec.seal_text(json.dumps(["example", "other"]).encode("utf-8")))
        if request.method == "GET" and len(segs) == 2:
            return _text(200, codec.seal_text(json.dumps(["www", "blog"]).encode("utf-8")))
        return _text(200, "OK")

    # -- entry point ----------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        segs = self.segments(request)

        if segs == ["auth"]:
            return self._auth(request)
        if segs[0] == "dns":
            return self._dns(request, segs)

        codec = self._codec_for(request)
        if codec is None:
            return _text(401, "Unauthorized")
        try:
            if segs[:2] == ["nfs", "file"]:
                return self._nfs_file(request, codec, segs)
            if segs[:2] == ["nfs", "directory"]:
                return self._nfs_directory(request, codec, segs)
        except DecryptError:
            return _text(400, "Bad envelope")
        return _text(404, "Not found")


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def app() -> AppInfo:
    return APP


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def client(launcher: FakeLauncher):
    http = httpx.Client(transport=httpx.MockTransport(launcher.handler))
    c = GatewayClient(http_client=http)
    yield c
    http.close()


@pytest.fixture
def fixed_session() -> Session:
    return Session(token="tok-fixed", shared_key=bytes(range(32)), nonce=bytes(range(100, 124)))


@pytest.fixture
def make_client(fixed_session: Session):
    """Client bound to a fixed session and a caller-supplied MockTransport handler."""
    clients: list[httpx.Client] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> GatewayClient:
        http = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(http)
        config = kwargs.pop("config", None) or SessionConfig.from_session(fixed_session)
        return GatewayClient(config, http_client=http, **kwargs)

    yield _make
    for http in clients:
        http.close()


@pytest.fixture
def codec(fixed_session: Session) -> EnvelopeCodec:
    return EnvelopeCodec.for_session(fixed_session)

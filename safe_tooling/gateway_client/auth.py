# =============================================================================
# Launcher handshake, session probe and ensure_authenticated
# =============================================================================
"""
Handshake (POST /auth, plaintext JSON, no bearer token):

  request  {"app": {name, id, version, vendor}, "permissions": [...],
            "publicKey": b64(32), "nonce": b64(24)}
  response {"token": "...", "encryptedKey": b64, "publicKey": b64(32)}

encryptedKey = box(shared_key || session_nonce, request nonce, server key -> client key)

The launcher prompts its user. A 401 means the user said no (AuthDenied); that
is never retried here. A blob that does not open is SessionDecryptError.

Probe (GET /auth, plaintext, bearer token): 200 = valid, 401 = not valid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..crypto_utils import KEY_SIZE, NONCE_SIZE, HandshakeKeys, open_session_key
from ..errors import APIError, AuthDenied, ResponseDecodeError, SessionDecryptError
from .session import Session
from .transport import GatewayRequest
from .wire import B64Bytes

if TYPE_CHECKING:
    from .client import GatewayClient

AUTH_PATH = "/auth"


class AuthPermission:
    SAFE_DRIVE_ACCESS = "SAFE_DRIVE_ACCESS"


class AppInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    id: str
    version: str
    vendor: str


class AuthHandshakeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    app: AppInfo
    # Always serialized, even empty: the launcher rejects a missing list
    permissions: list[str] = Field(default_factory=list)
    public_key: B64Bytes = Field(alias="publicKey")
    private_key: B64Bytes = Field(exclude=True, repr=False)
    nonce: B64Bytes

    @classmethod
    def build(
        cls,
        app: AppInfo,
        permissions: Iterable[str] = (),
        *,
        keys: Optional[HandshakeKeys] = None,
    ) -> "AuthHandshakeRequest":
        keys = keys or HandshakeKeys.generate()
        return cls(
            app=app,
            permissions=list(permissions or ()),
            public_key=keys.public_key,
            private_key=keys.private_key,
            nonce=keys.nonce,
        )


class AuthHandshakeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    encrypted_key: B64Bytes = Field(alias="encryptedKey")
    public_key: B64Bytes = Field(alias="publicKey")


@dataclass(frozen=True)
class AuthResult:
    request: AuthHandshakeRequest
    session: Session


def session_from_handshake(request: AuthHandshakeRequest, response: AuthHandshakeResponse) -> Session:
    """Open the key blob with the request's own private key and nonce."""
    if len(response.public_key) != KEY_SIZE:
        raise SessionDecryptError("launcher public key must be 32 bytes")

    opened = open_session_key(
        response.encrypted_key,
        server_public_key=response.public_key,
        private_key=request.private_key,
        nonce=request.nonce,
    )
    if len(opened) < KEY_SIZE + NONCE_SIZE:
        raise SessionDecryptError(f"opened session key blob too short ({len(opened)} bytes)")
    if not response.token:
        raise ResponseDecodeError("handshake response carried no token")

    return Session(token=response.token, shared_key=opened[:KEY_SIZE], nonce=opened[KEY_SIZE:])


def authenticate(
    client: "GatewayClient",
    app: AppInfo,
    permissions: Iterable[str] = (),
    *,
    keys: Optional[HandshakeKeys] = None,
) -> AuthResult:
    """
    Run the one-shot handshake. Does not touch the client's SessionStore.

    keys: optional caller-supplied key pair + nonce. HandshakeKeys carries all
    three, so partial key material cannot be passed.
    """
    request = AuthHandshakeRequest.build(app, permissions, keys=keys)
    client.logger.info("Requesting launcher authorization for app %r", app.id)

    try:
        resp = client.do(
            GatewayRequest(
                path=AUTH_PATH,
                method="POST",
                json_body=request,
                skip_encryption=True,
                skip_auth=True,
                json_response=AuthHandshakeResponse,
            )
        )
    except APIError as e:
        if e.status_code == 401:
            raise AuthDenied(e.status_code, e.body, headers=e.headers) from e
        raise

    if resp.data is None:
        raise ResponseDecodeError("handshake response was empty")
    session = session_from_handshake(request, resp.data)
    client.logger.info("Launcher authorized app %r", app.id)
    return AuthResult(request=request, session=session)


def is_session_valid(client: "GatewayClient") -> bool:
    """Probe the launcher with the current token. No token means no call."""
    if not client.session.token:
        return False
    try:
        resp = client.do(GatewayRequest(path=AUTH_PATH, method="GET", skip_encryption=True))
    except APIError as e:
        if e.status_code == 401:
            return False
        raise
    return resp.status_code == 200


def ensure_authenticated(
    client: "GatewayClient",
    app: AppInfo,
    permissions: Iterable[str] = (),
) -> Session:
    """
    Keep the current session if the launcher still accepts it, otherwise
    clear it and run a fresh handshake.

    Callers must serialize this against other calls on the same client.
    """
    if is_session_valid(client):
        return client.session

    client.logger.debug("No valid session, running handshake")
    client.sessions.clear()
    result = authenticate(client, app, permissions)
    client.sessions.replace(result.session)
    return result.session

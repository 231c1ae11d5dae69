# =============================================================================
# Session state and persisted client configuration
# =============================================================================
"""
A Session is the (token, shared_key, nonce) triple produced by the handshake.

- Session is frozen: it is either empty or fully populated.
- SessionStore swaps whole Session values, it never edits fields in place.
- SessionConfig is the persistable snapshot {launcherServer, token, sharedKey,
  nonce}. Where it is stored (file, keyring, env) is up to the caller.
"""

from __future__ import annotations

import binascii
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from ..crypto_utils import KEY_SIZE, NONCE_SIZE, b64_decode
from .wire import B64Bytes

if TYPE_CHECKING:
    from .client import GatewayClient


DEFAULT_BASE_URL = "http://localhost:8100/"


@dataclass(frozen=True)
class Session:
    token: str = ""
    shared_key: bytes = b""
    nonce: bytes = b""

    def __post_init__(self) -> None:
        populated = [bool(self.token), bool(self.shared_key), bool(self.nonce)]
        if any(populated) and not all(populated):
            raise ValueError("session must be either empty or have token, shared_key and nonce")
        if all(populated):
            if len(self.shared_key) != KEY_SIZE:
                raise ValueError("shared_key must be 32 bytes")
            if len(self.nonce) < NONCE_SIZE:
                raise ValueError("nonce must be at least 24 bytes")

    @property
    def is_established(self) -> bool:
        return bool(self.token)

    def __repr__(self) -> str:
        state = "established" if self.is_established else "empty"
        return f"Session(<{state}>)"


EMPTY_SESSION = Session()


class SessionStore:
    """
    Holder of the current Session for one client.

    No locking: callers serialize re-authentication against other calls.
    Reads of `current` are safe while no handshake is in flight.
    """
    def __init__(self, session: Optional[Session] = None):
        self._session = session or EMPTY_SESSION

    @property
    def current(self) -> Session:
        return self._session

    def replace(self, session: Session) -> None:
        if not isinstance(session, Session):
            raise TypeError("session must be a Session")
        self._session = session

    def clear(self) -> None:
        self._session = EMPTY_SESSION


class SessionConfig(BaseModel):
    """
    JSON-friendly client configuration, compatible with the key names the
    launcher tooling has always written:

      {"launcherServer": "...", "token": "...", "sharedKey": "<b64>", "nonce": "<b64>"}
    """
    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(DEFAULT_BASE_URL, alias="launcherServer")
    token: Optional[str] = None
    shared_key: Optional[B64Bytes] = Field(None, alias="sharedKey")
    nonce: Optional[B64Bytes] = None

    def to_session(self) -> Session:
        # A half-written config is treated as "not authenticated"
        if not (self.token and self.shared_key and self.nonce):
            return EMPTY_SESSION
        return Session(token=self.token, shared_key=self.shared_key, nonce=self.nonce)

    @classmethod
    def from_session(cls, session: Session, *, base_url: str = DEFAULT_BASE_URL) -> "SessionConfig":
        if not session.is_established:
            return cls(base_url=base_url)
        return cls(
            base_url=base_url,
            token=session.token,
            shared_key=session.shared_key,
            nonce=session.nonce,
        )

    @classmethod
    def from_client(cls, client: "GatewayClient") -> "SessionConfig":
        return cls.from_session(client.session, base_url=client.base_url)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, text: str | bytes) -> "SessionConfig":
        return cls.model_validate_json(text)


def load_config_from_env(
    *,
    auto_dotenv: bool = False,
    dotenv_path: Optional[str] = None,
    dotenv_override: bool = False,
) -> SessionConfig:
    """
    Build a SessionConfig from the environment:
      SAFE_LAUNCHER_URL, SAFE_TOKEN, SAFE_SHARED_KEY (b64), SAFE_NONCE (b64)

    With auto_dotenv=True a .env file is loaded first.
    """
    if auto_dotenv:
        load_dotenv(dotenv_path=dotenv_path, override=dotenv_override)

    def _b64_env(name: str) -> Optional[bytes]:
        raw = os.getenv(name)
        if not raw:
            return None
        try:
            return b64_decode(raw.strip())
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"{name} is not valid base64") from e

    return SessionConfig(
        base_url=os.getenv("SAFE_LAUNCHER_URL") or DEFAULT_BASE_URL,
        token=os.getenv("SAFE_TOKEN") or None,
        shared_key=_b64_env("SAFE_SHARED_KEY"),
        nonce=_b64_env("SAFE_NONCE"),
    )

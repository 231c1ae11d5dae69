from .client import GatewayClient
from .session import (
    DEFAULT_BASE_URL,
    EMPTY_SESSION,
    Session,
    SessionStore,
    SessionConfig,
    load_config_from_env,
    )
from .transport import (
    PLAINTEXT_SENTINELS,
    GatewayRequest,
    GatewayResponse,
    RequestBuilder,
    ResponseClassifier,
    DefaultRequestBuilder,
    DefaultResponseClassifier,
    )
from .auth import (
    AppInfo,
    AuthPermission,
    AuthHandshakeRequest,
    AuthHandshakeResponse,
    AuthResult,
    authenticate,
    is_session_valid,
    ensure_authenticated,
    )
from .nfs import DirInfo, DirResponse, FileInfo
from . import nfs, dns

from .errors import (
    GatewayError,
    RandomSourceError,
    DecryptError,
    SessionDecryptError,
    SessionNotEstablished,
    APIError,
    AuthDenied,
    TransportError,
    ResponseDecodeError,
    RequestBuildError,
    )
from .gateway_client import (
    GatewayClient,
    GatewayRequest,
    GatewayResponse,
    Session,
    SessionConfig,
    AppInfo,
    AuthPermission,
    load_config_from_env,
    )

import binascii
import dataclasses
import json
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, PlainSerializer

from ..crypto_utils import b64_decode, b64_encode


def _coerce_b64(v: Any) -> Any:
    # JSON carries bytes as standard base64; python callers may pass raw bytes.
    if isinstance(v, str):
        try:
            return b64_decode(v)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64: {e}") from e
    if isinstance(v, bytearray):
        return bytes(v)
    return v


B64Bytes = Annotated[
    bytes,
    BeforeValidator(_coerce_b64),
    PlainSerializer(b64_encode, return_type=str, when_used="always"),
]


def json_safe(x: Any) -> Any:
    """
    Convert request bodies into JSON-serializable structures.
    Pydantic models are dumped by alias so wire names match the launcher API.
    """
    if x is None or isinstance(x, (str, int, float, bool)):
        return x

    if isinstance(x, (tuple, list)):
        return [json_safe(v) for v in x]

    if isinstance(x, dict):
        return {str(k): json_safe(v) for k, v in x.items()}

    if isinstance(x, BaseModel):
        return x.model_dump(mode="json", by_alias=True)

    if isinstance(x, (bytes, bytearray)):
        return b64_encode(bytes(x))

    if dataclasses.is_dataclass(x) and not isinstance(x, type):
        return json_safe(dataclasses.asdict(x))

    raise TypeError(f"Object of type {type(x).__name__} is not JSON serializable")


def json_bytes(x: Any) -> bytes:
    return json.dumps(json_safe(x), separators=(",", ":")).encode("utf-8")

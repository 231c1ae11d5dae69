"""
Launcher file store (NFS) calls. Each one is a thin GatewayClient.do() caller.

File and directory paths are query-escaped into a single URL segment and
followed by "/<true|false>" for the shared (app-shared vs. private) root.
File contents travel base64 encoded inside the encrypted envelope.
"""

from __future__ import annotations

import binascii
import datetime as _dt
from typing import IO, TYPE_CHECKING, Optional, Union
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field

from ..crypto_utils import b64_decode, b64_encode
from ..errors import ResponseDecodeError
from .transport import GatewayRequest

if TYPE_CHECKING:
    from .client import GatewayClient


def _ms_to_datetime(ms: int) -> _dt.datetime:
    return _dt.datetime.fromtimestamp(ms / 1000.0, tz=_dt.timezone.utc)


class FileInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    size: int = 0
    created_on: int = Field(0, alias="createdOn")    # epoch millis
    modified_on: int = Field(0, alias="modifiedOn")  # epoch millis
    metadata: Optional[str] = ""

    @property
    def created_at(self) -> _dt.datetime:
        return _ms_to_datetime(self.created_on)

    @property
    def modified_at(self) -> _dt.datetime:
        return _ms_to_datetime(self.modified_on)


class DirInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    private: bool = Field(False, alias="isPrivate")
    versioned: bool = Field(False, alias="isVersioned")
    created_on: int = Field(0, alias="createdOn")
    modified_on: int = Field(0, alias="modifiedOn")
    metadata: Optional[str] = ""

    @property
    def created_at(self) -> _dt.datetime:
        return _ms_to_datetime(self.created_on)

    @property
    def modified_at(self) -> _dt.datetime:
        return _ms_to_datetime(self.modified_on)


class DirResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    info: DirInfo = Field(default_factory=DirInfo)
    files: list[FileInfo] = Field(default_factory=list)
    sub_dirs: list[DirInfo] = Field(default_factory=list, alias="subDirectories")

    def sorted_files(self) -> list[FileInfo]:
        return sorted(self.files, key=lambda f: f.name)

    def sorted_sub_dirs(self) -> list[DirInfo]:
        return sorted(self.sub_dirs, key=lambda d: d.name)


def _bool(b: bool) -> str:
    return "true" if b else "false"


def entry_path(prefix: str, path: str, shared: bool) -> str:
    return f"{prefix}/{quote_plus(path)}/{_bool(shared)}"


def _require_change(new_name: Optional[str], metadata: Optional[str]) -> dict:
    # Empty values are left out; the launcher cannot clear metadata
    body = {}
    if new_name:
        body["name"] = new_name
    if metadata:
        body["metadata"] = metadata
    if not body:
        raise ValueError("Must provide name or metadata")
    return body


# ----------------------------
# Directories
# ----------------------------

def create_dir(
    client: "GatewayClient",
    dir_path: str,
    *,
    private: bool = False,
    versioned: bool = False,
    metadata: str = "",
    shared: bool = False,
) -> None:
    client.do(GatewayRequest(
        path="/nfs/directory",
        method="POST",
        json_body={
            "dirPath": dir_path,
            "isPrivate": private,
            "isVersioned": versioned,
            "metadata": metadata,
            "isPathShared": shared,
        },
    ))


def get_dir(client: "GatewayClient", dir_path: str, *, shared: bool = False) -> DirResponse:
    resp = client.do(GatewayRequest(
        path=entry_path("/nfs/directory", dir_path, shared),
        method="GET",
        json_response=DirResponse,
    ))
    return resp.data if resp.data is not None else DirResponse()


def delete_dir(client: "GatewayClient", dir_path: str, *, shared: bool = False) -> None:
    client.do(GatewayRequest(path=entry_path("/nfs/directory", dir_path, shared), method="DELETE"))


def change_dir(
    client: "GatewayClient",
    dir_path: str,
    *,
    shared: bool = False,
    new_name: Optional[str] = None,
    metadata: Optional[str] = None,
) -> None:
    body = _require_change(new_name, metadata)
    client.do(GatewayRequest(path=entry_path("/nfs/directory", dir_path, shared), method="PUT", json_body=body))


def move_dir(
    client: "GatewayClient",
    src_path: str,
    dest_path: str,
    *,
    src_shared: bool = False,
    dest_shared: bool = False,
    retain_source: bool = False,
) -> None:
    client.do(GatewayRequest(
        path="/nfs/movedir",
        method="POST",
        json_body={
            "srcPath": src_path,
            "isSrcPathShared": src_shared,
            "destPath": dest_path,
            "isDestPathShared": dest_shared,
            "retainSource": retain_source,
        },
    ))


# ----------------------------
# Files
# ----------------------------

def create_file(client: "GatewayClient", file_path: str, *, shared: bool = False, metadata: str = "") -> None:
    client.do(GatewayRequest(
        path="/nfs/file",
        method="POST",
        json_body={"filePath": file_path, "isPathShared": shared, "metadata": metadata},
    ))


def delete_file(client: "GatewayClient", file_path: str, *, shared: bool = False) -> None:
    client.do(GatewayRequest(path=entry_path("/nfs/file", file_path, shared), method="DELETE"))


def change_file(
    client: "GatewayClient",
    file_path: str,
    *,
    shared: bool = False,
    new_name: Optional[str] = None,
    metadata: Optional[str] = None,
) -> None:
    body = _require_change(new_name, metadata)
    client.do(GatewayRequest(path=entry_path("/nfs/file/metadata", file_path, shared), method="PUT", json_body=body))


def move_file(
    client: "GatewayClient",
    src_path: str,
    dest_path: str,
    *,
    src_shared: bool = False,
    dest_shared: bool = False,
    retain_source: bool = False,
) -> None:
    client.do(GatewayRequest(
        path="/nfs/movefile",
        method="POST",
        json_body={
            "srcPath": src_path,
            "isSrcPathShared": src_shared,
            "destPath": dest_path,
            "isDestPathShared": dest_shared,
            "retainSource": retain_source,
        },
    ))


def write_file(
    client: "GatewayClient",
    file_path: str,
    contents: Union[bytes, str, IO[bytes]],
    *,
    shared: bool = False,
    offset: int = 0,
) -> None:
    if isinstance(contents, str):
        data = contents.encode("utf-8")
    elif isinstance(contents, (bytes, bytearray)):
        data = bytes(contents)
    else:
        data = contents.read()
    client.do(GatewayRequest(
        path=entry_path("/nfs/file", file_path, shared),
        method="PUT",
        raw_body=b64_encode(data).encode("utf-8"),
        query={"offset": offset},
    ))


def read_file(
    client: "GatewayClient",
    file_path: str,
    *,
    shared: bool = False,
    offset: int = 0,
    length: int = 0,
) -> bytes:
    """Read `length` bytes from `offset`; length 0 reads to the end."""
    query = {"offset": offset}
    if length > 0:
        query["length"] = length
    resp = client.do(GatewayRequest(
        path=entry_path("/nfs/file", file_path, shared),
        method="GET",
        query=query,
    ))
    try:
        return b64_decode(resp.body) if resp.body else b""
    except (binascii.Error, ValueError) as e:
        raise ResponseDecodeError(f"Unable to decode file output: {e}") from e

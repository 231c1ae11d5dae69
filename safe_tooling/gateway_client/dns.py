"""
Launcher name service (DNS) calls.

Public lookups (service_dir, get_public_file) go out unencrypted and without
the bearer token; everything else uses the session envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote_plus

from .nfs import DirResponse, FileInfo
from .transport import GatewayRequest

if TYPE_CHECKING:
    from .client import GatewayClient


@dataclass
class PublicFile:
    info: FileInfo
    content_type: str
    body: bytes


def list_names(client: "GatewayClient") -> list[str]:
    resp = client.do(GatewayRequest(path="/dns", method="GET", json_response=list[str]))
    return list(resp.data or [])


def list_services(client: "GatewayClient", name: str) -> list[str]:
    resp = client.do(GatewayRequest(path=f"/dns/{quote_plus(name)}", method="GET", json_response=list[str]))
    return list(resp.data or [])


def service_dir(client: "GatewayClient", name: str, service: str) -> DirResponse:
    resp = client.do(GatewayRequest(
        path=f"/dns/{quote_plus(service)}/{quote_plus(name)}",
        method="GET",
        json_response=DirResponse,
        skip_encryption=True,
        skip_auth=True,
    ))
    return resp.data if resp.data is not None else DirResponse()


def get_public_file(
    client: "GatewayClient",
    name: str,
    service: str,
    file_path: str,
    *,
    offset: int = 0,
    length: int = 0,
) -> PublicFile:
    query = {"offset": offset}
    if length > 0:
        query["length"] = length
    resp = client.do(GatewayRequest(
        path=f"/dns/{quote_plus(service)}/{quote_plus(name)}/{quote_plus(file_path)}",
        method="GET",
        query=query,
        skip_encryption=True,
        skip_auth=True,
    ))
    info = FileInfo(
        name=resp.headers.get("file-name", ""),
        size=resp.header_int("file-size"),
        created_on=resp.header_int("file-created-time"),
        modified_on=resp.header_int("file-modified-time"),
        # the launcher sends the literal "undefined" when unset
        metadata=resp.headers.get("file-metadata", ""),
    )
    return PublicFile(info=info, content_type=resp.headers.get("content-type", ""), body=resp.body)


def register(
    client: "GatewayClient",
    name: str,
    service_name: str,
    home_dir_path: str,
    *,
    shared: bool = False,
) -> None:
    """Create `name` and attach `service_name` -> `home_dir_path` in one call."""
    client.do(GatewayRequest(
        path="/dns",
        method="POST",
        json_body={
            "longName": name,
            "serviceName": service_name,
            "serviceHomeDirPath": home_dir_path,
            "isPathShared": shared,
        },
    ))


def create_name(client: "GatewayClient", name: str) -> None:
    client.do(GatewayRequest(path=f"/dns/{quote_plus(name)}", method="POST"))


def add_service(
    client: "GatewayClient",
    name: str,
    service_name: str,
    home_dir_path: str,
    *,
    shared: bool = False,
) -> None:
    """Attach a service to an existing name."""
    client.do(GatewayRequest(
        path="/dns",
        method="PUT",
        json_body={
            "longName": name,
            "serviceName": service_name,
            "serviceHomeDirPath": home_dir_path,
            "isPathShared": shared,
        },
    ))


def delete_name(client: "GatewayClient", name: str) -> None:
    client.do(GatewayRequest(path=f"/dns/{quote_plus(name)}", method="DELETE"))


def delete_service(client: "GatewayClient", name: str, service: str) -> None:
    client.do(GatewayRequest(path=f"/dns/{quote_plus(service)}/{quote_plus(name)}", method="DELETE"))

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..digest import digest_ref_for_value


@dataclass
class PortProtocolEntry:
    port: int
    protocol: str
    enable_ssl: bool = False


@dataclass
class TLSCertNode:
    name: str
    tenant: str
    key: str | None = None
    cert: str | None = None
    cert_type: str = "VS"


@dataclass
class VIPNode:
    name: str
    tenant: str
    vrf_context: str
    vip_networks: list[str] = field(default_factory=list)
    tier1_router: str | None = None
    ip_address: str | None = None


@dataclass
class VirtualServiceNode:
    name: str
    tenant: str
    service_engine_group: str
    application_profile: str
    network_profile: str
    vrf_context: str
    gateway: str
    vip: VIPNode
    port_protocols: list[PortProtocolEntry] = field(default_factory=list)
    tls_nodes: list[TLSCertNode] = field(default_factory=list)
    evh_parent: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def checksum(self) -> str:
        """Content checksum; list order is significant."""
        return digest_ref_for_value(self.to_dict())

from __future__ import annotations

import logging

from ..config import ControllerConfig
from ..logs import log_json
from ..models import GatewayIntent
from ..naming import gateway_parent_name, vsvip_name
from ..placement import NetworkPlacementCache
from .nodes import PortProtocolEntry, VIPNode, VirtualServiceNode
from .tls import EncodedKeyIndex, SecretLookup, build_tls_nodes

__all__ = ["GraphBuilder", "build_port_protocols"]

_LOGGER = logging.getLogger(__name__)


def build_port_protocols(intent: GatewayIntent) -> list[PortProtocolEntry]:
    return [
        PortProtocolEntry(
            port=int(listener.port),
            protocol=listener.protocol,
            enable_ssl=listener.tls_enabled,
        )
        for listener in intent.listeners
    ]


class GraphBuilder:
    """
    Builds the EVH parent virtual service for a gateway.

    Trusts that the intent passed admission checks; validation outcomes are
    reported separately by the status layer.
    """

    def __init__(
        self,
        *,
        config: ControllerConfig,
        secret_lookup: SecretLookup,
        placement: NetworkPlacementCache,
    ) -> None:
        self._config = config
        self._secret_lookup = secret_lookup
        self._placement = placement

    @property
    def config(self) -> ControllerConfig:
        return self._config

    def build_vip_node(self, intent: GatewayIntent, vs_name: str) -> VIPNode:
        vip = VIPNode(
            name=vsvip_name(vs_name),
            tenant=self._config.tenant,
            vrf_context=self._config.vrf_context,
            vip_networks=self._placement.networks_for_namespace(intent.namespace),
            tier1_router=self._placement.router_for_namespace(intent.namespace),
        )
        # Zero or multiple addresses are rejected by validation, not here.
        if len(intent.addresses) == 1:
            vip.ip_address = intent.addresses[0]
        return vip

    def build_virtual_service(
        self, intent: GatewayIntent, *, key: str
    ) -> tuple[VirtualServiceNode, EncodedKeyIndex]:
        vs_name = gateway_parent_name(self._config, intent.namespace, intent.name)
        tls_nodes, index = build_tls_nodes(
            intent, self._secret_lookup, config=self._config, key=key
        )
        vs = VirtualServiceNode(
            name=vs_name,
            tenant=self._config.tenant,
            service_engine_group=self._config.service_engine_group,
            application_profile=self._config.application_profile,
            network_profile=self._config.network_profile,
            vrf_context=self._config.vrf_context,
            gateway=intent.key,
            vip=self.build_vip_node(intent, vs_name),
            port_protocols=build_port_protocols(intent),
            tls_nodes=tls_nodes,
        )
        log_json(logging.INFO, "graph.built", logger=_LOGGER, key=key, vs=vs_name, checksum=vs.checksum())
        return vs, index

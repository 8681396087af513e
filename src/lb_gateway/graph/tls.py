"""
TLS material for a gateway's virtual service.

A full build resolves every certificate reference. Certificate events are
merged incrementally: nodes whose encoded key is untouched keep their relative
order, so checksum comparison downstream only sees real changes.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterator, Mapping, Sequence

from ..config import ControllerConfig
from ..logs import log_json
from ..models import GatewayIntent, ListenerSpec, SecretMaterial
from ..naming import tls_cert_node_name
from .nodes import TLSCertNode

__all__ = [
    "EncodedKeyIndex",
    "SecretLookup",
    "apply_certificate_removal",
    "apply_certificate_upsert",
    "build_tls_nodes",
    "iter_certificate_refs",
    "tls_node_from_secret",
]

_LOGGER = logging.getLogger(__name__)

SecretLookup = Callable[[str, str], "SecretMaterial | None"]

# (kept node, ref namespace, ref name) -> node to keep or None to drop
RetainFn = Callable[[TLSCertNode, str, str], "TLSCertNode | None"]
# (listener, ref namespace, ref name) -> new node or None
SynthesizeFn = Callable[[ListenerSpec, str, str], "TLSCertNode | None"]


class EncodedKeyIndex:
    """Encoded TLS key -> positions it occupies in the current TLS node list."""

    def __init__(self, positions: Mapping[str, Sequence[int]] | None = None) -> None:
        self._positions: dict[str, list[int]] = {
            key: list(values) for key, values in (positions or {}).items() if values
        }

    def record(self, key: str, position: int) -> None:
        self._positions.setdefault(key, []).append(position)

    def take(self, key: str) -> int | None:
        """Pop the first recorded position for ``key``; drop the key once empty."""
        positions = self._positions.get(key)
        if not positions:
            return None
        position = positions.pop(0)
        if not positions:
            del self._positions[key]
        return position

    def positions(self, key: str) -> list[int]:
        return list(self._positions.get(key, ()))

    def reset(self, nodes: Sequence[TLSCertNode]) -> None:
        self._positions.clear()
        for position, node in enumerate(nodes):
            self.record(node.name, position)

    def as_dict(self) -> dict[str, list[int]]:
        return {key: list(values) for key, values in self._positions.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._positions

    def __len__(self) -> int:
        return len(self._positions)


def iter_certificate_refs(intent: GatewayIntent) -> Iterator[tuple[ListenerSpec, str, str]]:
    """Yield (listener, namespace, name) for every certificate ref in declared order."""
    for listener in intent.listeners:
        if listener.tls is None:
            continue
        for ref in listener.tls.certificate_refs:
            yield listener, ref.resolve_namespace(intent.namespace), ref.name


def tls_node_from_secret(
    secret: SecretMaterial,
    hostname: str | None,
    cert_name: str,
    *,
    config: ControllerConfig,
    key: str,
) -> TLSCertNode:
    if secret.cert is None:
        log_json(logging.INFO, "tls.certificate_missing", logger=_LOGGER, key=key, secret=secret.name)
    if secret.key is None:
        log_json(logging.INFO, "tls.key_missing", logger=_LOGGER, key=key, secret=secret.name)
    return TLSCertNode(
        name=tls_cert_node_name(config, hostname, cert_name),
        tenant=config.tenant,
        key=secret.key,
        cert=secret.cert,
    )


def build_tls_nodes(
    intent: GatewayIntent,
    lookup: SecretLookup,
    *,
    config: ControllerConfig,
    key: str,
) -> tuple[list[TLSCertNode], EncodedKeyIndex]:
    nodes: list[TLSCertNode] = []
    index = EncodedKeyIndex()
    for listener, namespace, name in iter_certificate_refs(intent):
        secret = lookup(namespace, name)
        if secret is None:
            log_json(
                logging.WARNING,
                "tls.secret_missing",
                logger=_LOGGER,
                key=key,
                secret=f"{namespace}/{name}",
            )
            continue
        node = tls_node_from_secret(secret, listener.hostname, name, config=config, key=key)
        index.record(node.name, len(nodes))
        nodes.append(node)
    return nodes, index


def _reconcile_tls_nodes(
    current: Sequence[TLSCertNode],
    intent: GatewayIntent,
    index: EncodedKeyIndex,
    *,
    config: ControllerConfig,
    retain: RetainFn,
    synthesize: SynthesizeFn,
) -> list[TLSCertNode]:
    nodes: list[TLSCertNode] = []
    for listener, namespace, name in iter_certificate_refs(intent):
        encoded = tls_cert_node_name(config, listener.hostname, name)
        position = index.take(encoded)
        if position is not None and position < len(current):
            kept = retain(current[position], namespace, name)
            if kept is not None:
                nodes.append(kept)
            continue
        created = synthesize(listener, namespace, name)
        if created is not None:
            nodes.append(created)
    # Entries for references that no longer exist are discarded here.
    index.reset(nodes)
    return nodes


def apply_certificate_upsert(
    current: Sequence[TLSCertNode],
    intent: GatewayIntent,
    secret: SecretMaterial,
    index: EncodedKeyIndex,
    *,
    config: ControllerConfig,
    key: str,
) -> list[TLSCertNode]:
    """
    Merge a created or updated certificate secret into an existing TLS list.

    Indexed nodes keep their position; nodes backed by ``secret`` get its
    fresh material. References to ``secret`` that were not built before are
    synthesized. Other unresolved references stay absent.
    """

    def _matches(namespace: str, name: str) -> bool:
        return namespace == secret.namespace and name == secret.name

    def _retain(node: TLSCertNode, namespace: str, name: str) -> TLSCertNode:
        if _matches(namespace, name):
            return replace(node, key=secret.key, cert=secret.cert)
        return node

    def _synthesize(listener: ListenerSpec, namespace: str, name: str) -> TLSCertNode | None:
        if not _matches(namespace, name):
            return None
        return tls_node_from_secret(secret, listener.hostname, name, config=config, key=key)

    nodes = _reconcile_tls_nodes(
        current, intent, index, config=config, retain=_retain, synthesize=_synthesize
    )
    log_json(logging.INFO, "tls.upserted", logger=_LOGGER, key=key, secret=secret.ref_key, count=len(nodes))
    return nodes


def apply_certificate_removal(
    current: Sequence[TLSCertNode],
    intent: GatewayIntent,
    namespace: str,
    name: str,
    index: EncodedKeyIndex,
    *,
    config: ControllerConfig,
    key: str,
) -> list[TLSCertNode]:
    """Drop nodes backed by the deleted secret; every other node keeps its position."""

    def _retain(node: TLSCertNode, ref_namespace: str, ref_name: str) -> TLSCertNode | None:
        if ref_namespace == namespace and ref_name == name:
            return None
        return node

    def _synthesize(listener: ListenerSpec, ref_namespace: str, ref_name: str) -> None:
        return None

    nodes = _reconcile_tls_nodes(
        current, intent, index, config=config, retain=_retain, synthesize=_synthesize
    )
    log_json(
        logging.INFO,
        "tls.removed",
        logger=_LOGGER,
        key=key,
        secret=f"{namespace}/{name}",
        count=len(nodes),
    )
    return nodes

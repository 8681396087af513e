from __future__ import annotations

import hashlib

from .config import ControllerConfig

__all__ = [
    "encode_name",
    "gateway_parent_name",
    "vsvip_name",
    "tls_cert_node_name",
    "split_key",
]


def _prefix(config: ControllerConfig) -> str:
    return f"{config.name_prefix}{config.cluster_name}--"


def encode_name(config: ControllerConfig, name: str, object_type: str) -> str:
    prefix = _prefix(config)
    if not config.encode_names:
        return prefix + name
    digest = hashlib.sha1(f"{name}:{object_type}".encode("utf-8")).hexdigest()
    return prefix + digest


def gateway_parent_name(config: ControllerConfig, namespace: str, name: str) -> str:
    return encode_name(config, f"{namespace}-{name}-EVH", "EVHVS")


def vsvip_name(vs_name: str) -> str:
    return f"{vs_name}-vsvip"


def tls_cert_node_name(config: ControllerConfig, hostname: str | None, cert_name: str) -> str:
    # Encoded key of a TLS node: identity independent of list position.
    if hostname:
        return encode_name(config, f"{hostname}-{cert_name}", "TLSKeyCert")
    return encode_name(config, cert_name, "TLSKeyCert")


def split_key(key: str) -> tuple[str, str, str]:
    """Split ``Kind/namespace/name`` (kind optional) into its parts."""
    parts = key.split("/")
    if len(parts) == 3:
        return parts[0], parts[1], parts[2]
    if len(parts) == 2:
        return "", parts[0], parts[1]
    raise ValueError(f"invalid object key: {key}")

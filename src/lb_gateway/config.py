"""
Controller configuration for the LB gateway controller.

Loaded once from the environment at startup and immutable during runtime.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


__all__ = [
    "ControllerConfig",
    "DEFAULT_CONTROLLER_NAME",
    "load_controller_config",
    "get_controller_config",
    "reset_config_cache",
]

DEFAULT_CONTROLLER_NAME = "ako.vmware.com/avi-lb"
DEFAULT_APP_PROFILE = "System-HTTP"
DEFAULT_NETWORK_PROFILE = "System-TCP-Proxy"


@dataclass(frozen=True)
class ControllerConfig:
    """Immutable controller configuration."""

    # Ownership
    controller_name: str = DEFAULT_CONTROLLER_NAME

    # Naming
    cluster_name: str = "cluster"
    name_prefix: str = "ako-gw-"
    encode_names: bool = False

    # Appliance placement
    tenant: str = "admin"
    service_engine_group: str = "Default-Group"
    vrf_context: str = "global"
    vip_networks: tuple[str, ...] = ()
    tier1_router: str | None = None
    vcf_cluster: bool = False
    application_profile: str = DEFAULT_APP_PROFILE
    network_profile: str = DEFAULT_NETWORK_PROFILE

    # Runtime
    status_patch_retries: int = 5
    workers: int = 8
    queue_max: int = 1000


def _read_int_env(names: list[str], *, default: int, minimum: int = 1) -> int:
    for name in names:
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            value = int(raw)
        except ValueError:
            continue
        return max(minimum, value)
    return max(minimum, default)


def _env_bool(name: str, *, default: bool = False) -> bool:
    raw_val = os.getenv(name)
    if raw_val is None:
        return default
    val = raw_val.strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name, "").strip()
    return raw or default


def _parse_csv_env(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if raw == "":
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_controller_config() -> ControllerConfig:
    """
    Build the controller configuration from environment variables.

    Unset or malformed values fall back to defaults; integer settings are
    clamped to their minimum.
    """
    controller_name = _env_str("LB_GATEWAY_CONTROLLER_NAME", DEFAULT_CONTROLLER_NAME)
    tier1_router = os.getenv("NSXT_T1_LR", "").strip() or None
    return ControllerConfig(
        controller_name=controller_name,
        cluster_name=_env_str("CLUSTER_NAME", "cluster"),
        name_prefix=_env_str("LB_GATEWAY_NAME_PREFIX", "ako-gw-"),
        encode_names=_env_bool("LB_GATEWAY_ENCODE_NAMES"),
        tenant=_env_str("TENANT_NAME", "admin"),
        service_engine_group=_env_str("SEG_NAME", "Default-Group"),
        vrf_context=_env_str("VRF_NAME", "global"),
        vip_networks=_parse_csv_env("VIP_NETWORK_LIST"),
        tier1_router=tier1_router,
        vcf_cluster=_env_bool("VCF_CLUSTER"),
        application_profile=_env_str("LB_GATEWAY_APP_PROFILE", DEFAULT_APP_PROFILE),
        network_profile=_env_str("LB_GATEWAY_NETWORK_PROFILE", DEFAULT_NETWORK_PROFILE),
        status_patch_retries=_read_int_env(["LB_GATEWAY_STATUS_RETRIES"], default=5, minimum=1),
        workers=_read_int_env(["LB_GATEWAY_WORKERS"], default=8, minimum=1),
        queue_max=_read_int_env(["LB_GATEWAY_QUEUE_MAX"], default=1000, minimum=1),
    )


@lru_cache(maxsize=1)
def get_controller_config() -> ControllerConfig:
    """
    Get cached controller configuration.

    Loads once at first call, immutable thereafter.
    """
    return load_controller_config()


def reset_config_cache() -> None:
    """Reset config cache. Only for testing."""
    get_controller_config.cache_clear()

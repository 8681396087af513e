from __future__ import annotations

import os

from ..ports.realization_port import RealizationPort
from .dry_run import DryRunRealizer
from .http_push import HttpPushRealizer


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def create_realizer() -> RealizationPort:
    mode = os.getenv("LB_GATEWAY_PUSH_MODE", "dry_run").strip().lower()
    if mode in ("dry_run", ""):
        return DryRunRealizer()
    if mode == "http":
        base_url = os.getenv("LB_GATEWAY_PUSH_URL", "").strip()
        if base_url == "":
            raise ValueError("LB_GATEWAY_PUSH_URL required for http push mode")
        token = os.getenv("LB_GATEWAY_PUSH_TOKEN", "").strip() or None
        return HttpPushRealizer(
            base_url=base_url,
            token=token,
            timeout_s=_get_env_float("LB_GATEWAY_PUSH_TIMEOUT_S", 30.0),
        )
    raise ValueError(f"unsupported push mode: {mode}")

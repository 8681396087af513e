from __future__ import annotations

import os
from pathlib import Path

from .base import GatewayStore
from .kube import KubeStore
from .memory import MemoryStore

SERVICE_ACCOUNT_TOKEN = Path("/var/run/secrets/kubernetes.io/serviceaccount/token")


def _read_token() -> str | None:
    token = os.getenv("KUBE_TOKEN", "").strip()
    if token:
        return token
    token_path = Path(os.getenv("KUBE_TOKEN_FILE", str(SERVICE_ACCOUNT_TOKEN)))
    if token_path.exists():
        return token_path.read_text(encoding="utf-8").strip() or None
    return None


def create_store() -> GatewayStore:
    backend = os.getenv("LB_GATEWAY_STORE", "memory").strip().lower()
    if backend == "memory" or backend == "":
        return MemoryStore()
    if backend == "kube":
        base_url = os.getenv("KUBE_API_URL", "").strip()
        if not base_url:
            raise ValueError("KUBE_API_URL required for kube backend")
        ca_file = os.getenv("KUBE_CA_FILE", "").strip()
        return KubeStore(
            base_url=base_url,
            token=_read_token(),
            verify=ca_file or True,
        )
    raise ValueError(f"unsupported store backend: {backend}")

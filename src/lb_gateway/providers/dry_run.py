from __future__ import annotations

import logging

from ..graph.nodes import VirtualServiceNode
from ..logs import log_json
from ..ports.realization_port import RealizationResult
from ..rendering.renderer import render_virtual_service

_LOGGER = logging.getLogger(__name__)


class DryRunRealizer:
    """Renders and logs instead of pushing; reports the static VIP, if any."""

    def __init__(self) -> None:
        self.pushed: dict[str, str] = {}

    def push(self, key: str, vs: VirtualServiceNode) -> RealizationResult:
        rendered = render_virtual_service(vs=vs)
        self.pushed[key] = rendered.render_digest
        log_json(
            logging.INFO,
            "push.dry_run",
            logger=_LOGGER,
            key=key,
            vs=vs.name,
            render_digest=rendered.render_digest,
        )
        return RealizationResult(state="programmed", vip=vs.vip.ip_address)

    def delete(self, key: str, vs_name: str) -> RealizationResult:
        self.pushed.pop(key, None)
        log_json(logging.INFO, "push.dry_run_delete", logger=_LOGGER, key=key, vs=vs_name)
        return RealizationResult(state="pending")

    def close(self) -> None:
        return None

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..graph.nodes import VirtualServiceNode
from ..logs import log_json
from ..ports.realization_port import RealizationResult
from ..rendering.renderer import render_virtual_service
from .errors import RealizationError

_LOGGER = logging.getLogger(__name__)


class HttpPushRealizer:
    """Pushes rendered virtual services to an appliance-facing HTTP endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"content-type": "application/json"}
        if token:
            headers["authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    def push(self, key: str, vs: VirtualServiceNode) -> RealizationResult:
        rendered = render_virtual_service(vs=vs)
        body = {
            "key": key,
            "render_digest": rendered.render_digest,
            "manifest": rendered.render_manifest,
            "objects": rendered.payload,
        }
        try:
            resp = self._client.put(f"/virtualservices/{vs.name}", json=body)
        except httpx.HTTPError as exc:
            raise RealizationError(f"push transport error: {exc}") from exc
        if resp.status_code >= 400:
            _raise_push(resp, "push failed")
        vip = _parse_vip(resp) or vs.vip.ip_address
        log_json(logging.INFO, "push.completed", logger=_LOGGER, key=key, vs=vs.name, vip=vip)
        return RealizationResult(state="programmed", vip=vip)

    def delete(self, key: str, vs_name: str) -> RealizationResult:
        try:
            resp = self._client.delete(f"/virtualservices/{vs_name}")
        except httpx.HTTPError as exc:
            raise RealizationError(f"push transport error: {exc}") from exc
        if resp.status_code >= 400 and resp.status_code != 404:
            _raise_push(resp, "delete failed")
        log_json(logging.INFO, "push.deleted", logger=_LOGGER, key=key, vs=vs_name)
        return RealizationResult(state="pending")

    def close(self) -> None:
        self._client.close()


def _parse_vip(resp: httpx.Response) -> str | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    vip = data.get("vip")
    return vip if isinstance(vip, str) and vip else None


def _raise_push(resp: httpx.Response, where: str) -> None:
    code = None
    msg = None
    try:
        j: Any = resp.json()
        err = j.get("error") if isinstance(j, dict) else None
        if isinstance(err, dict):
            code = err.get("code")
            msg = err.get("message")
        elif isinstance(err, str):
            msg = err
    except ValueError:
        pass
    detail = msg or resp.text[:500]
    raise RealizationError(
        f"{where}: {detail}",
        status_code=resp.status_code,
        code=str(code) if code else None,
    )

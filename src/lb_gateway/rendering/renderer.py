from __future__ import annotations

from ..digest import digest_ref_for_value
from ..graph.nodes import VirtualServiceNode
from .models import RenderResult
from .specs.evh_parent_v1 import build_manifest_evh_parent_v1, render_evh_parent_v1


def render_virtual_service(
    *,
    vs: VirtualServiceNode,
    spec: str = "render.evh_parent_v1",
) -> RenderResult:
    if spec == "render.evh_parent_v1":
        payload = render_evh_parent_v1(vs=vs)
        manifest = build_manifest_evh_parent_v1(vs=vs)
    else:
        raise ValueError(f"unsupported render spec: {spec}")

    return RenderResult(
        payload=payload,
        render_digest=digest_ref_for_value(payload),
        render_manifest=manifest,
    )

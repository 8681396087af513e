from __future__ import annotations

import argparse
import logging
import time
import uuid
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Mapping

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query, Request, status

from .config import ControllerConfig, get_controller_config
from .controller import (
    RESYNC_KEY,
    GatewayController,
    gateway_class_work_key,
    gateway_work_key,
    secret_work_key,
)
from .logs import configure_logging, log_json
from .placement import NetworkPlacementCache
from .ports.realization_port import RealizationPort
from .providers.factory import create_realizer
from .rendering.renderer import render_virtual_service
from .store.base import GatewayStore, ObjectKind, StoreError
from .store.factory import create_store
from .wire import object_ref
from .workqueue import KeyedWorkQueue, WorkQueueFull

_EVENT_KINDS: dict[str, ObjectKind] = {
    "gateways": "Gateway",
    "gatewayclasses": "GatewayClass",
    "secrets": "Secret",
}


def _get_version() -> str:
    try:
        return version("lb-gateway-controller")
    except PackageNotFoundError:
        return "unknown"


def create_app(
    *,
    config: ControllerConfig | None = None,
    store: GatewayStore | None = None,
    realizer: RealizationPort | None = None,
    placement: NetworkPlacementCache | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        cfg = config or get_controller_config()
        app.state.config = cfg
        app.state.store = store or create_store()
        app.state.realizer = realizer or create_realizer()
        app.state.controller = GatewayController(
            config=cfg,
            store=app.state.store,
            realizer=app.state.realizer,
            placement=placement,
        )
        app.state.queue = KeyedWorkQueue(shards=cfg.workers, queue_max=cfg.queue_max)
        await app.state.queue.start(app.state.controller.handle)
        app.state.start_time = time.monotonic()
        log_json(
            logging.INFO,
            "controller.started",
            controller_name=cfg.controller_name,
            cluster=cfg.cluster_name,
            workers=cfg.workers,
        )
        try:
            yield
        finally:
            await app.state.queue.stop()
            app.state.realizer.close()
            app.state.store.close()

    app = FastAPI(title="LB Gateway Controller", lifespan=lifespan)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id", "").strip() or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.monotonic() - start) * 1000)
            log_json(
                logging.ERROR,
                "request.failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                latency_ms=latency_ms,
            )
            raise
        latency_ms = int((time.monotonic() - start) * 1000)
        response.headers["x-request-id"] = request_id
        log_json(
            logging.INFO,
            "request.completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return response

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/status")
    async def status_surface() -> dict[str, Any]:
        cfg: ControllerConfig = app.state.config
        controller: GatewayController = app.state.controller
        return {
            "main_version": _get_version(),
            "controller_name": cfg.controller_name,
            "cluster_name": cfg.cluster_name,
            "models": controller.models.keys(),
            "queue": app.state.queue.pending_counts(),
            "uptime_s": int(time.monotonic() - app.state.start_time),
        }

    @app.get("/models/{namespace}/{name}")
    async def model_surface(namespace: str, name: str) -> dict[str, Any]:
        controller: GatewayController = app.state.controller
        model = controller.models.get(f"{namespace}/{name}")
        if model is None or model.vs is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="model not found")
        with model.lock:
            rendered = render_virtual_service(vs=model.vs)
            realization = model.realization
            return {
                "key": model.key,
                "vs": _redact_vs(model.vs.to_dict()),
                "checksum": model.checksum(),
                "pushed_checksum": model.pushed_checksum,
                "tls_index": model.tls_index.as_dict(),
                "render_digest": rendered.render_digest,
                "render_manifest": rendered.render_manifest,
                "realization": None
                if realization is None
                else {"state": realization.state, "vip": realization.vip, "error": realization.error},
            }

    @app.post("/events/{kind}", status_code=status.HTTP_202_ACCEPTED)
    async def ingest_event(
        kind: str,
        body: dict[str, Any] = Body(...),
        wait: bool = Query(default=False),
    ) -> dict[str, Any]:
        object_kind = _resolve_kind(kind)
        try:
            namespace, name = object_ref(body, namespaced=object_kind != "GatewayClass")
            app.state.store.observe(object_kind, namespace, name, body)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except StoreError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return await _enqueue(app, _work_key(object_kind, namespace, name), wait=wait)

    @app.delete("/events/{kind}/{namespace}/{name}", status_code=status.HTTP_202_ACCEPTED)
    async def delete_event(
        kind: str,
        namespace: str,
        name: str,
        wait: bool = Query(default=False),
    ) -> dict[str, Any]:
        object_kind = _resolve_kind(kind)
        if object_kind == "GatewayClass":
            namespace = ""
        try:
            app.state.store.observe(object_kind, namespace, name, None)
        except StoreError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return await _enqueue(app, _work_key(object_kind, namespace, name), wait=wait)

    @app.post("/resync", status_code=status.HTTP_202_ACCEPTED)
    async def resync(wait: bool = Query(default=False)) -> dict[str, Any]:
        return await _enqueue(app, RESYNC_KEY, wait=wait)

    return app


async def _enqueue(app: FastAPI, work_key: str, *, wait: bool) -> dict[str, Any]:
    queue: KeyedWorkQueue = app.state.queue
    try:
        queued = queue.enqueue(work_key)
    except WorkQueueFull as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if wait:
        await queue.drain()
    return {"accepted": True, "key": work_key, "queued": queued, "drained": wait}


def _resolve_kind(kind: str) -> ObjectKind:
    object_kind = _EVENT_KINDS.get(kind)
    if object_kind is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"unknown kind: {kind}")
    return object_kind


def _work_key(kind: ObjectKind, namespace: str, name: str) -> str:
    if kind == "Gateway":
        return gateway_work_key(namespace, name)
    if kind == "Secret":
        return secret_work_key(namespace, name)
    return gateway_class_work_key(name)


def _redact_vs(vs: Mapping[str, Any]) -> dict[str, Any]:
    redacted = dict(vs)
    redacted["tls_nodes"] = [
        {**node, "key": "<redacted>" if node.get("key") else None} for node in vs.get("tls_nodes", [])
    ]
    return redacted


def main() -> None:
    args = _parse_args()
    app = create_app()
    uvicorn.run(app, host=args.host, port=args.port, reload=False)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="lb-gateway")
    sub = parser.add_subparsers(dest="command", required=True)
    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8010)
    return parser.parse_args()


app = create_app()

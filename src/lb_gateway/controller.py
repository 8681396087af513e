"""
Gateway reconciliation.

One pass per queued key: read the gateway, validate it, build or merge its
virtual service, push when the checksum moved, then write status back.
Queue keys take the form ``Kind/namespace/name``; cluster-scoped kinds leave
the namespace empty.
"""
from __future__ import annotations

import logging

from .config import ControllerConfig
from .graph.builder import GraphBuilder
from .graph.model import GatewayModel, ModelCache
from .graph.tls import iter_certificate_refs
from .logs import log_json
from .models import GatewayIntent, GatewayStatus, SecretMaterial
from .naming import split_key
from .placement import NetworkPlacementCache
from .ports.realization_port import RealizationPort, RealizationResult
from .providers.errors import RealizationError
from .status.computer import compute_gateway_status
from .status.patcher import GatewayStatusPatcher
from .status.validation import ValidationOutcome, validate_gateway
from .store.base import GatewayStore, StoreError

_LOGGER = logging.getLogger(__name__)

RESYNC_KEY = "Resync//all"


def gateway_work_key(namespace: str, name: str) -> str:
    return f"Gateway/{namespace}/{name}"


def gateway_class_work_key(name: str) -> str:
    return f"GatewayClass//{name}"


def secret_work_key(namespace: str, name: str) -> str:
    return f"Secret/{namespace}/{name}"


class GatewayController:
    def __init__(
        self,
        *,
        config: ControllerConfig,
        store: GatewayStore,
        realizer: RealizationPort,
        placement: NetworkPlacementCache | None = None,
        models: ModelCache | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.realizer = realizer
        self.placement = placement or NetworkPlacementCache.from_config(config)
        self.models = models if models is not None else ModelCache()
        self.builder = GraphBuilder(
            config=config,
            secret_lookup=self._lookup_secret,
            placement=self.placement,
        )
        self.patcher = GatewayStatusPatcher(store, config=config)

    def handle(self, work_key: str) -> None:
        kind, namespace, name = split_key(work_key)
        if kind == "Gateway":
            self.sync_gateway(namespace, name)
        elif kind == "Secret":
            self.sync_secret(namespace, name)
        elif kind == "GatewayClass":
            self.sync_gateway_class(name)
        elif kind == "Resync":
            self.resync_all()
        else:
            raise ValueError(f"unsupported work key: {work_key}")

    def sync_gateway(self, namespace: str, name: str) -> GatewayStatus | None:
        key = f"{namespace}/{name}"
        gateway = self.store.get_gateway(namespace, name)
        if gateway is None:
            self._withdraw(key)
            log_json(logging.INFO, "gateway.deleted", logger=_LOGGER, key=key)
            return None

        validation = self._validate(gateway)
        if not validation.owned:
            # Status of gateways we do not own is left alone.
            self._withdraw(key)
            log_json(
                logging.INFO,
                "gateway.not_owned",
                logger=_LOGGER,
                key=key,
                gateway_class=gateway.gateway_class_name,
            )
            return None

        if validation.buildable:
            model = self.models.get_or_create(key)
            with model.lock:
                if self.models.get(key) is not model:
                    # Withdrawn by a concurrent event; that event owns the outcome.
                    log_json(logging.INFO, "gateway.superseded", logger=_LOGGER, key=key)
                    return None
                model.rebuild(self.builder, gateway)
                realization = self._push(model)
        else:
            realization = self._withdraw(key)
            if realization is None and gateway.status.addresses:
                realization = RealizationResult("pending")

        desired = compute_gateway_status(gateway, validation, realization)
        if desired is not None:
            self.patcher.reconcile(key, gateway, desired)
        return desired

    def sync_gateway_class(self, name: str) -> int:
        gateways = [gw for gw in self.store.list_gateways() if gw.gateway_class_name == name]
        for gateway in gateways:
            self.sync_gateway(gateway.namespace, gateway.name)
        return len(gateways)

    def sync_secret(self, namespace: str, name: str) -> int:
        """Merge a changed or deleted certificate into every owned gateway that references it."""
        secret = self._lookup_secret(namespace, name)
        touched = 0
        for key, gateway in self.patcher.owned_gateways().items():
            if not _references(gateway, namespace, name):
                continue
            touched += 1
            model = self.models.get(key)
            if model is None or model.vs is None:
                self.sync_gateway(gateway.namespace, gateway.name)
                continue
            self._merge_certificate(model, gateway, namespace, name, secret)
        log_json(
            logging.INFO,
            "secret.synced",
            logger=_LOGGER,
            secret=f"{namespace}/{name}",
            deleted=secret is None,
            gateways=touched,
        )
        return touched

    def resync_all(self) -> int:
        gateways = self.store.list_gateways()
        live = {gateway.key for gateway in gateways}
        for key in self.models.keys():
            if key not in live:
                self._withdraw(key)
        for gateway in gateways:
            self.sync_gateway(gateway.namespace, gateway.name)
        vips: dict[str, str | None] = {}
        for key in self.models.keys():
            model = self.models.get(key)
            if model is not None and model.realization is not None and model.realization.programmed:
                vips[key] = model.realization.vip
        self.patcher.bulk_update(RESYNC_KEY, vips)
        return len(gateways)

    def _merge_certificate(
        self,
        model: GatewayModel,
        gateway: GatewayIntent,
        namespace: str,
        name: str,
        secret: SecretMaterial | None,
    ) -> None:
        validation = self._validate(gateway)
        if not validation.buildable:
            self.sync_gateway(gateway.namespace, gateway.name)
            return
        with model.lock:
            if self.models.get(model.key) is not model:
                log_json(logging.INFO, "gateway.superseded", logger=_LOGGER, key=model.key)
                return
            if secret is None:
                changed = model.remove_certificate(gateway, namespace, name, config=self.config)
            else:
                changed = model.upsert_certificate(gateway, secret, config=self.config)
            realization = self._push(model) if changed else model.realization
        desired = compute_gateway_status(gateway, validation, realization)
        if desired is not None:
            self.patcher.reconcile(model.key, gateway, desired)

    def _validate(self, gateway: GatewayIntent) -> ValidationOutcome:
        gateway_class = self.store.get_gateway_class(gateway.gateway_class_name)
        return validate_gateway(
            gateway,
            gateway_class,
            self._secret_exists,
            controller_name=self.config.controller_name,
        )

    def _push(self, model: GatewayModel) -> RealizationResult | None:
        if model.vs is None:
            return None
        if not model.needs_push:
            return model.realization
        checksum = model.checksum()
        try:
            result = self.realizer.push(model.key, model.vs)
        except RealizationError as exc:
            log_json(
                logging.WARNING,
                "push.failed",
                logger=_LOGGER,
                key=model.key,
                vs=model.vs.name,
                status_code=exc.status_code,
                code=exc.code,
                error=str(exc),
            )
            result = RealizationResult("failed", error=str(exc))
        else:
            model.pushed_checksum = checksum
            log_json(
                logging.INFO,
                "push.completed",
                logger=_LOGGER,
                key=model.key,
                vs=model.vs.name,
                checksum=checksum,
                state=result.state,
            )
        model.realization = result
        return result

    def _withdraw(self, key: str) -> RealizationResult | None:
        model = self.models.pop(key)
        if model is None:
            return None
        with model.lock:
            vs, pushed_checksum = model.vs, model.pushed_checksum
            model.vs = None
            model.pushed_checksum = None
            model.realization = None
            if vs is None or pushed_checksum is None:
                return None
            try:
                return self.realizer.delete(key, vs.name)
            except RealizationError as exc:
                log_json(
                    logging.WARNING,
                    "push.delete_failed",
                    logger=_LOGGER,
                    key=key,
                    vs=vs.name,
                    error=str(exc),
                )
                return RealizationResult("failed", error=str(exc))

    def _lookup_secret(self, namespace: str, name: str) -> SecretMaterial | None:
        try:
            return self.store.get_secret(namespace, name)
        except StoreError as exc:
            log_json(
                logging.WARNING,
                "tls.secret_read_failed",
                logger=_LOGGER,
                secret=f"{namespace}/{name}",
                error=str(exc),
            )
            return None

    def _secret_exists(self, namespace: str, name: str) -> bool:
        return self._lookup_secret(namespace, name) is not None


def _references(gateway: GatewayIntent, namespace: str, name: str) -> bool:
    return any(
        ref_namespace == namespace and ref_name == name
        for _, ref_namespace, ref_name in iter_certificate_refs(gateway)
    )

from __future__ import annotations

import copy
import logging
from typing import Mapping

from ..config import ControllerConfig
from ..logs import log_json
from ..models import GatewayIntent, GatewayStatus
from ..store.base import GatewayStore, StatusConflictError, StoreError
from .computer import mark_pending, mark_programmed


def _without_transition_times(status: GatewayStatus) -> GatewayStatus:
    normalized = copy.deepcopy(status)
    for condition in normalized.conditions:
        condition.last_transition_time = ""
    for listener in normalized.listeners:
        for condition in listener.conditions:
            condition.last_transition_time = ""
    return normalized


def is_status_equal(old: GatewayStatus, new: GatewayStatus) -> bool:
    return _without_transition_times(old) == _without_transition_times(new)


class GatewayStatusPatcher:
    """
    Writes gateway status back to the store.

    Writes are skipped when the stored status already matches; stale
    resource versions are retried against a fresh read of the gateway.
    """

    def __init__(self, store: GatewayStore, *, config: ControllerConfig) -> None:
        self._store = store
        self._config = config

    @property
    def max_attempts(self) -> int:
        return max(1, self._config.status_patch_retries)

    def reconcile(self, key: str, stored: GatewayIntent, desired: GatewayStatus) -> bool:
        gateway = stored
        for attempt in range(1, self.max_attempts + 1):
            if is_status_equal(gateway.status, desired):
                return False
            try:
                self._store.patch_gateway_status(
                    gateway.namespace,
                    gateway.name,
                    desired,
                    resource_version=gateway.resource_version,
                )
            except (StatusConflictError, StoreError) as exc:
                log_json(
                    logging.WARNING,
                    "status.patch_failed",
                    key=key,
                    attempt=attempt,
                    conflict=isinstance(exc, StatusConflictError),
                    error=str(exc),
                )
                try:
                    fresh = self._store.get_gateway(gateway.namespace, gateway.name)
                except StoreError as read_exc:
                    log_json(logging.WARNING, "status.refetch_failed", key=key, error=str(read_exc))
                    continue
                if fresh is None:
                    log_json(logging.INFO, "status.gateway_gone", key=key)
                    return False
                gateway = fresh
                continue
            log_json(
                logging.INFO,
                "status.patched",
                key=key,
                attempt=attempt,
                addresses=desired.addresses,
            )
            return True
        log_json(logging.ERROR, "status.patch_aborted", key=key, attempts=self.max_attempts)
        return False

    def update(self, key: str, gateway: GatewayIntent, vip: str | None) -> bool:
        desired = copy.deepcopy(gateway.status)
        mark_programmed(desired, gateway.generation, vip)
        return self.reconcile(key, gateway, desired)

    def delete(self, key: str, gateway: GatewayIntent) -> bool:
        """Reset addresses and report Pending; a no-op if nothing was programmed."""
        if not gateway.status.addresses:
            return False
        desired = copy.deepcopy(gateway.status)
        mark_pending(desired, gateway.generation)
        return self.reconcile(key, gateway, desired)

    def owned_gateways(self) -> dict[str, GatewayIntent]:
        owned = {
            gateway_class.name
            for gateway_class in self._store.list_gateway_classes()
            if gateway_class.controller_name == self._config.controller_name
        }
        return {
            gateway.key: gateway
            for gateway in self._store.list_gateways()
            if gateway.gateway_class_name in owned
        }

    def bulk_update(self, key: str, vips: Mapping[str, str | None]) -> int:
        """Mark every owned gateway named in ``vips`` programmed; returns the write count."""
        gateways = self.owned_gateways()
        written = 0
        for gateway_key, vip in vips.items():
            gateway = gateways.get(gateway_key)
            if gateway is None:
                log_json(logging.DEBUG, "status.bulk_skipped", key=key, gateway=gateway_key)
                continue
            if self.update(gateway_key, gateway, vip):
                written += 1
        log_json(logging.INFO, "status.bulk_updated", key=key, written=written, total=len(vips))
        return written

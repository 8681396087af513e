"""
Admission checks for gateways and their listeners.

Outcomes are data, never exceptions: the status computer turns them into
conditions and the controller decides from them whether a graph is built.
Only gateways of a class this controller owns are ever buildable.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from ..models import SECRET_KIND, GatewayClass, GatewayIntent, ListenerSpec
from .conditions import (
    REASON_ACCEPTED,
    REASON_INVALID,
    REASON_INVALID_CERTIFICATE_REF,
    REASON_LISTENERS_NOT_VALID,
    REASON_UNSUPPORTED_PROTOCOL,
)

__all__ = [
    "ListenerValidation",
    "ValidationOutcome",
    "is_valid_hostname",
    "validate_gateway",
    "validate_listener",
]

SUPPORTED_PROTOCOLS = ("HTTP", "HTTPS")
SUPPORTED_TLS_MODES = ("Terminate",)

MSG_NO_LISTENERS = "No listeners found"
MSG_MULTIPLE_ADDRESSES = "More than one address is not supported"
MSG_GATEWAY_VALID = "Gateway configuration is valid"
MSG_LISTENER_VALID = "Listener is valid"
MSG_UNSUPPORTED_PROTOCOL = "Unsupported protocol"
MSG_INVALID_HOSTNAME = "Hostname not found or Hostname has invalid configuration"
MSG_INVALID_TLS = "TLS mode or reference not valid"

_HOST_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$")

SecretExists = Callable[[str, str], bool]


@dataclass(frozen=True)
class ListenerValidation:
    name: str
    valid: bool
    reason: str
    message: str


@dataclass(frozen=True)
class ValidationOutcome:
    owned: bool
    accepted: bool
    buildable: bool
    reason: str
    message: str
    listeners: tuple[ListenerValidation, ...] = ()


def is_valid_hostname(hostname: str | None) -> bool:
    if not hostname:
        return False
    host = hostname.lower()
    if host.startswith("*."):
        host = host[2:]
    # A bare "*" or a wildcard anywhere but the leading label is rejected.
    if not host or "*" in host or len(host) > 253:
        return False
    return all(_HOST_LABEL.match(label) for label in host.split("."))


def _tls_valid(listener: ListenerSpec, namespace: str, secret_exists: SecretExists) -> bool:
    tls = listener.tls
    if tls is None:
        return listener.protocol != "HTTPS"
    if (tls.mode or "Terminate") not in SUPPORTED_TLS_MODES:
        return False
    if listener.protocol == "HTTPS" and not tls.certificate_refs:
        return False
    for ref in tls.certificate_refs:
        if ref.kind != SECRET_KIND or ref.group not in ("", "core"):
            return False
        if not secret_exists(ref.resolve_namespace(namespace), ref.name):
            return False
    return True


def validate_listener(
    listener: ListenerSpec, namespace: str, secret_exists: SecretExists
) -> ListenerValidation:
    if listener.protocol not in SUPPORTED_PROTOCOLS:
        return ListenerValidation(
            listener.name, False, REASON_UNSUPPORTED_PROTOCOL, MSG_UNSUPPORTED_PROTOCOL
        )
    if not is_valid_hostname(listener.hostname):
        return ListenerValidation(
            listener.name, False, REASON_LISTENERS_NOT_VALID, MSG_INVALID_HOSTNAME
        )
    if not _tls_valid(listener, namespace, secret_exists):
        return ListenerValidation(
            listener.name, False, REASON_INVALID_CERTIFICATE_REF, MSG_INVALID_TLS
        )
    return ListenerValidation(listener.name, True, REASON_ACCEPTED, MSG_LISTENER_VALID)


def validate_gateway(
    intent: GatewayIntent,
    gateway_class: GatewayClass | None,
    secret_exists: SecretExists,
    *,
    controller_name: str,
) -> ValidationOutcome:
    owned = gateway_class is not None and gateway_class.controller_name == controller_name
    listeners = tuple(
        validate_listener(listener, intent.namespace, secret_exists) for listener in intent.listeners
    )
    if not intent.listeners:
        return ValidationOutcome(owned, False, False, REASON_INVALID, MSG_NO_LISTENERS, listeners)
    if len(intent.addresses) > 1:
        return ValidationOutcome(owned, False, False, REASON_INVALID, MSG_MULTIPLE_ADDRESSES, listeners)
    invalid = sum(1 for listener in listeners if not listener.valid)
    if invalid:
        return ValidationOutcome(
            owned,
            False,
            owned,
            REASON_LISTENERS_NOT_VALID,
            f"Gateway contains {invalid} invalid listener(s)",
            listeners,
        )
    return ValidationOutcome(owned, True, owned, REASON_ACCEPTED, MSG_GATEWAY_VALID, listeners)

from __future__ import annotations

import copy

from ..models import GatewayIntent, GatewayStatus, ListenerStatus
from ..ports.realization_port import RealizationResult
from .conditions import (
    CONDITION_ACCEPTED,
    CONDITION_PROGRAMMED,
    REASON_INVALID,
    REASON_PENDING,
    REASON_PROGRAMMED,
    new_condition,
    set_status_condition,
    utc_now,
)
from .validation import ValidationOutcome

MSG_PROGRAMMED = "Virtual service configured/updated"
MSG_DELETED = "Virtual service has been deleted"
MSG_REALIZATION_FAILED = "Virtual service realization failed"


def apply_realization(
    status: GatewayStatus,
    realization: RealizationResult,
    generation: int,
    *,
    now: str | None = None,
) -> None:
    """Set the Programmed condition on the gateway and every listener, in place."""
    now = now or utc_now()
    if realization.state == "programmed":
        args = ("True", REASON_PROGRAMMED, MSG_PROGRAMMED)
        status.addresses = [realization.vip] if realization.vip else []
    elif realization.state == "pending":
        args = ("Unknown", REASON_PENDING, MSG_DELETED)
        status.addresses = []
    else:
        message = MSG_REALIZATION_FAILED
        if realization.error:
            message = f"{MSG_REALIZATION_FAILED}: {realization.error}"
        args = ("False", REASON_INVALID, message)
    set_status_condition(
        status.conditions, new_condition(CONDITION_PROGRAMMED, *args, generation), now=now
    )
    for listener in status.listeners:
        set_status_condition(
            listener.conditions, new_condition(CONDITION_PROGRAMMED, *args, generation), now=now
        )


def mark_programmed(status: GatewayStatus, generation: int, vip: str | None, *, now: str | None = None) -> None:
    apply_realization(status, RealizationResult("programmed", vip=vip), generation, now=now)


def mark_pending(status: GatewayStatus, generation: int, *, now: str | None = None) -> None:
    apply_realization(status, RealizationResult("pending"), generation, now=now)


def compute_gateway_status(
    intent: GatewayIntent,
    validation: ValidationOutcome,
    realization: RealizationResult | None = None,
    *,
    previous: GatewayStatus | None = None,
    now: str | None = None,
) -> GatewayStatus | None:
    """
    Desired status for ``intent``, or None when the gateway class is not ours.

    Conditions of other types in ``previous`` are carried over untouched.
    Listener statuses are rebuilt in listener order; a listener that kept its
    name keeps its conditions and their transition times. Without a
    realization outcome the previous Programmed conditions and addresses stand.
    """
    if not validation.owned:
        return None
    now = now or utc_now()
    base = copy.deepcopy(previous if previous is not None else intent.status)
    generation = intent.generation

    status = GatewayStatus(conditions=base.conditions, addresses=list(base.addresses))
    set_status_condition(
        status.conditions,
        new_condition(
            CONDITION_ACCEPTED,
            "True" if validation.accepted else "False",
            validation.reason,
            validation.message,
            generation,
        ),
        now=now,
    )

    previous_listeners = {listener.name: listener for listener in base.listeners}
    for listener, outcome in zip(intent.listeners, validation.listeners):
        carried = previous_listeners.get(listener.name)
        entry = ListenerStatus(
            name=listener.name,
            conditions=carried.conditions if carried is not None else [],
        )
        set_status_condition(
            entry.conditions,
            new_condition(
                CONDITION_ACCEPTED,
                "True" if outcome.valid else "False",
                outcome.reason,
                outcome.message,
                generation,
            ),
            now=now,
        )
        status.listeners.append(entry)

    if realization is not None:
        apply_realization(status, realization, generation, now=now)
    return status

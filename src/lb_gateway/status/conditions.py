from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from ..models import Condition, ConditionStatus

CONDITION_ACCEPTED = "Accepted"
CONDITION_PROGRAMMED = "Programmed"

REASON_ACCEPTED = "Accepted"
REASON_INVALID = "Invalid"
REASON_LISTENERS_NOT_VALID = "ListenersNotValid"
REASON_PROGRAMMED = "Programmed"
REASON_PENDING = "Pending"
REASON_UNSUPPORTED_PROTOCOL = "UnsupportedProtocol"
REASON_INVALID_CERTIFICATE_REF = "InvalidCertificateRef"


def utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def new_condition(
    type_: str,
    status: ConditionStatus,
    reason: str,
    message: str,
    observed_generation: int,
) -> Condition:
    return Condition(
        type=type_,
        status=status,
        reason=reason,
        message=message,
        observed_generation=observed_generation,
    )


def find_condition(conditions: Sequence[Condition], type_: str) -> Condition | None:
    for condition in conditions:
        if condition.type == type_:
            return condition
    return None


def set_status_condition(conditions: list[Condition], condition: Condition, *, now: str | None = None) -> None:
    """
    Insert or update ``condition`` by type.

    The transition time moves only when the status value changes.
    """
    timestamp = condition.last_transition_time or now or utc_now()
    existing = find_condition(conditions, condition.type)
    if existing is None:
        condition.last_transition_time = timestamp
        conditions.append(condition)
        return
    if existing.status != condition.status:
        existing.status = condition.status
        existing.last_transition_time = timestamp
    existing.reason = condition.reason
    existing.message = condition.message
    existing.observed_generation = condition.observed_generation

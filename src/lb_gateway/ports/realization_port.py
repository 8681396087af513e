from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from ..graph.nodes import VirtualServiceNode

RealizationState = Literal["programmed", "pending", "failed"]


@dataclass(frozen=True)
class RealizationResult:
    state: RealizationState
    vip: str | None = None
    error: str | None = None

    @property
    def programmed(self) -> bool:
        return self.state == "programmed"


class RealizationPort(Protocol):
    def push(self, key: str, vs: "VirtualServiceNode") -> RealizationResult:
        """
        Hand a finished virtual service to the appliance.

        Args:
            key: Gateway key (``namespace/name``) the graph was built for.
            vs: The complete virtual service tree with its checksum.

        Raises:
            RealizationError: The appliance rejected or could not be reached.
        """
        ...

    def delete(self, key: str, vs_name: str) -> RealizationResult:
        ...

    def close(self) -> None:
        ...

"""ResourceBinding protocol: what a declarative engine drives."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from amqp_provisioner.config.models import InstanceConfig
from amqp_provisioner.resource.state import InstanceState, UpdateResult


@runtime_checkable
class ResourceBinding(Protocol):
    """Create / read / update / delete for one remote resource type."""

    async def create(
        self, config: InstanceConfig, *, deadline: float | None = None
    ) -> InstanceState:
        """Provision the resource and return its read-back state."""
        ...

    async def read(
        self, instance_id: str, *, deadline: float | None = None
    ) -> InstanceState | None:
        """Return current state, or None when the resource no longer exists."""
        ...

    async def update(
        self,
        instance_id: str,
        prior: InstanceConfig | None,
        desired: InstanceConfig,
        *,
        new_resource: bool = False,
        deadline: float | None = None,
    ) -> UpdateResult:
        """Apply changed fields and report the outcome per field."""
        ...

    async def delete(self, instance_id: str) -> None:
        """Forget the resource locally."""
        ...

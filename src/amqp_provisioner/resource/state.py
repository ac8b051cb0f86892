"""Local view of a provisioned instance and per-field update outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from amqp_provisioner.api.errors import ProvisionerError


@dataclass(frozen=True)
class InstanceState:
    """Attributes read back from the remote instance, in declared vocabulary."""

    instance_id: str
    instance_type: Any = None
    status: str | None = None
    support_eip: bool | None = None
    payment_type: str | None = None
    renewal_duration: int | None = None
    renewal_duration_unit: Any = None
    renewal_status: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "instance_type": self.instance_type,
            "status": self.status,
            "support_eip": self.support_eip,
            "payment_type": self.payment_type,
            "renewal_duration": self.renewal_duration,
            "renewal_duration_unit": self.renewal_duration_unit,
            "renewal_status": self.renewal_status,
        }


class FieldOutcome(StrEnum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class UpdateResult:
    """Outcome of an update, field by field.

    Requests are independent, so one may fail while the other is applied.
    ``errors`` is keyed by action name.
    """

    fields: dict[str, FieldOutcome] = field(default_factory=dict)
    errors: dict[str, ProvisionerError] = field(default_factory=dict)
    state: InstanceState | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def by_outcome(self, outcome: FieldOutcome) -> list[str]:
        return sorted(name for name, value in self.fields.items() if value == outcome)

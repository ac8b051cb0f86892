"""Change detection with per-field diff suppression.

Some declared fields only mean something under particular values of other
fields.  While that condition does not hold, the field is ignored when
deciding whether the instance needs an update.
"""

from __future__ import annotations

from collections.abc import Callable

from amqp_provisioner.config.models import (
    InstanceConfig,
    InstanceType,
    PaymentType,
    RenewalStatus,
)

# Fields compared by changed_fields(); modify_type is a request hint only.
DIFFABLE_FIELDS: tuple[str, ...] = (
    "instance_type",
    "max_tps",
    "max_eip_tps",
    "queue_capacity",
    "support_eip",
    "storage_size",
    "payment_type",
    "period",
    "renewal_duration",
    "renewal_duration_unit",
    "renewal_status",
    "logistics",
)


def _not_subscription(config: InstanceConfig) -> bool:
    return config.payment_type != PaymentType.SUBSCRIPTION


def _not_auto_renewing(config: InstanceConfig) -> bool:
    return (
        _not_subscription(config)
        or config.renewal_status != RenewalStatus.AUTO_RENEWAL
    )


_SUPPRESSORS: dict[str, Callable[[InstanceConfig], bool]] = {
    "max_eip_tps": lambda config: config.support_eip is not True,
    "storage_size": lambda config: config.instance_type == InstanceType.PROFESSIONAL,
    "period": _not_subscription,
    "renewal_status": _not_subscription,
    "renewal_duration": _not_auto_renewing,
    "renewal_duration_unit": _not_auto_renewing,
}


def is_suppressed(field: str, config: InstanceConfig) -> bool:
    """Return True when *field* is ignored for diffing under *config*."""
    suppressor = _SUPPRESSORS.get(field)
    return suppressor is not None and suppressor(config)


def changed_fields(prior: InstanceConfig | None, desired: InstanceConfig) -> set[str]:
    """Return the non-suppressed fields whose desired value differs from *prior*.

    With no prior configuration every field that is set counts as changed.
    """
    changed: set[str] = set()
    for field in DIFFABLE_FIELDS:
        if is_suppressed(field, desired):
            continue
        new = getattr(desired, field)
        if prior is None:
            if new is not None and new != "":
                changed.add(field)
            continue
        if getattr(prior, field) != new:
            changed.add(field)
    return changed


def requires_replacement(prior: InstanceConfig | None, desired: InstanceConfig) -> bool:
    """The instance tier cannot be changed in place."""
    return prior is not None and prior.instance_type != desired.instance_type

"""Build billing API payloads from a declared instance configuration."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Collection
from typing import Any

from amqp_provisioner.api.errors import ConfigurationError
from amqp_provisioner.config.models import (
    InstanceConfig,
    InstanceType,
    ProviderConfig,
)
from amqp_provisioner.resource.translate import FieldTranslator

CREATE_ACTION = "CreateInstance"
MODIFY_ACTION = "ModifyInstance"
RENEWAL_ACTION = "SetRenewal"

# Declared field -> ``Parameter`` code, in request order.
CAPACITY_PARAMETERS: tuple[tuple[str, str], ...] = (
    ("max_eip_tps", "MaxEipTps"),
    ("max_tps", "MaxTps"),
    ("queue_capacity", "QueueCapacity"),
    ("support_eip", "SupportEip"),
    ("storage_size", "StorageSize"),
)
CAPACITY_FIELDS = frozenset(field for field, _ in CAPACITY_PARAMETERS)
RENEWAL_FIELDS = frozenset(
    {"payment_type", "renewal_status", "renewal_duration", "renewal_duration_unit"}
)
_EIP_FIELDS = frozenset({"max_eip_tps", "support_eip"})
# Sent with CreateInstance only; no update request can change them.
CREATE_ONLY_FIELDS = frozenset({"period", "logistics"})


def _is_set(value: Any) -> bool:
    return value is not None and value != ""


def _value(value: Any) -> Any:
    return getattr(value, "value", value)


def build_client_token(action: str, prefix: str = "TF") -> str:
    """Return an idempotency token for one logical call of *action*."""
    token = f"{prefix}-{action}-{int(time.time())}-{uuid.uuid4().hex}".strip()
    return token[:64]


def check_eip_throughput(config: InstanceConfig) -> None:
    """Raise ConfigurationError when EIP is on but has no throughput."""
    if _is_set(config.max_eip_tps) or config.support_eip is False:
        return
    msg = (
        "attribute 'max_eip_tps' is required when 'support_eip' is "
        f"{config.support_eip}"
    )
    raise ConfigurationError(msg, action=MODIFY_ACTION)


class RequestBuilder:
    """Assembles CreateInstance, ModifyInstance and SetRenewal payloads."""

    def __init__(
        self,
        provider: ProviderConfig,
        translator: FieldTranslator | None = None,
        *,
        token_factory: Callable[[str], str] | None = None,
    ) -> None:
        self._provider = provider
        self._product = provider.product
        self._translator = translator or FieldTranslator(provider.translation)
        self._token_factory = token_factory or (
            lambda action: build_client_token(action, provider.client_token_prefix)
        )

    def _product_fields(self, config: InstanceConfig) -> dict[str, Any]:
        return {
            "SubscriptionType": _value(config.payment_type),
            "ProductCode": self._product.product_code,
            "ProductType": self._product.product_type,
        }

    def _parameter(
        self, field: str, code: str, config: InstanceConfig
    ) -> dict[str, Any]:
        value = _value(getattr(config, field))
        if field == "support_eip":
            value = self._translator.support_eip_to_remote(value)
        return {"Code": code, "Value": value}

    def _capacity_parameters(
        self, config: InstanceConfig, fields: Collection[str]
    ) -> list[dict[str, Any]]:
        professional = config.instance_type == InstanceType.PROFESSIONAL
        parameters: list[dict[str, Any]] = []
        for field, code in CAPACITY_PARAMETERS:
            if field not in fields:
                continue
            if field == "storage_size" and professional:
                continue
            value = getattr(config, field)
            # support_eip is sent for both true and false.
            present = value is not None if field == "support_eip" else _is_set(value)
            if present:
                parameters.append(self._parameter(field, code, config))
        return parameters

    def create_request(self, config: InstanceConfig) -> dict[str, Any]:
        """Full CreateInstance payload for *config*."""
        parameters = [{"Code": "Region", "Value": self._provider.region_id}]
        parameters.append(
            {
                "Code": "InstanceType",
                "Value": self._translator.instance_type_to_remote(
                    _value(config.instance_type)
                ),
            }
        )
        parameters.extend(self._capacity_parameters(config, CAPACITY_FIELDS))

        request: dict[str, Any] = {"Parameter": parameters}
        request.update(self._product_fields(config))
        if _is_set(config.logistics):
            request["Logistics"] = config.logistics
        if config.period is not None:
            request["Period"] = config.period
        if config.renewal_duration is not None:
            request["RenewPeriod"] = config.renewal_duration
        if config.renewal_status is not None:
            request["RenewalStatus"] = _value(config.renewal_status)
        request["ClientToken"] = self._token_factory(CREATE_ACTION)
        return request

    def renewal_request(
        self,
        instance_id: str,
        config: InstanceConfig,
        changed: Collection[str],
    ) -> dict[str, Any] | None:
        """SetRenewal payload for the changed billing fields, or None."""
        if not RENEWAL_FIELDS.intersection(changed):
            return None

        request: dict[str, Any] = {
            "InstanceIDs": instance_id,
            "ProductCode": self._product.product_code,
            "ProductType": self._product.product_type,
        }
        # The action always needs the target renewal status.
        if config.renewal_status is not None:
            request["RenewalStatus"] = _value(config.renewal_status)
        if "payment_type" in changed:
            request["SubscriptionType"] = _value(config.payment_type)
        if "renewal_duration" in changed and config.renewal_duration is not None:
            request["RenewalPeriod"] = config.renewal_duration
        unit = config.renewal_duration_unit
        if "renewal_duration_unit" in changed and unit is not None:
            request["RenewalPeriodUnit"] = self._translator.renewal_unit_to_remote(
                _value(unit)
            )
        request["ClientToken"] = self._token_factory(RENEWAL_ACTION)
        return request

    def modify_request(
        self,
        instance_id: str,
        config: InstanceConfig,
        changed: Collection[str],
        *,
        new_resource: bool = False,
    ) -> dict[str, Any] | None:
        """ModifyInstance payload for the changed capacity fields, or None.

        On the first reconciliation after create every present capacity field
        is sent.  The EIP pair always travels together.
        """
        check_eip_throughput(config)

        fields = set(CAPACITY_FIELDS)
        if not new_resource:
            fields &= set(changed)
        if fields & _EIP_FIELDS:
            fields |= _EIP_FIELDS
        parameters = self._capacity_parameters(config, fields)
        if not parameters:
            return None

        request: dict[str, Any] = {"InstanceId": instance_id, "Parameter": parameters}
        request.update(self._product_fields(config))
        if config.modify_type is not None:
            request["ModifyType"] = _value(config.modify_type)
        request["ClientToken"] = self._token_factory(MODIFY_ACTION)
        return request

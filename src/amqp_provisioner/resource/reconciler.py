"""AmqpInstanceReconciler: create, read, update and delete for AMQP instances."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Collection
from typing import Any

import structlog

from amqp_provisioner.api.client import RpcClient
from amqp_provisioner.api.errors import (
    ConfigurationError,
    NotFoundError,
    ProvisionerError,
    ResponseCodeError,
)
from amqp_provisioner.api.invoker import RetryingInvoker, ensure_success
from amqp_provisioner.api.services import AmqpOpenService, BssOpenApiService
from amqp_provisioner.config.models import InstanceConfig, ProviderConfig
from amqp_provisioner.resource.diff import (
    DIFFABLE_FIELDS,
    changed_fields,
    requires_replacement,
)
from amqp_provisioner.resource.poller import ReadinessPoller
from amqp_provisioner.resource.request import (
    CAPACITY_PARAMETERS,
    CREATE_ACTION,
    CREATE_ONLY_FIELDS,
    MODIFY_ACTION,
    RENEWAL_ACTION,
    RENEWAL_FIELDS,
    RequestBuilder,
    check_eip_throughput,
)
from amqp_provisioner.resource.state import FieldOutcome, InstanceState, UpdateResult
from amqp_provisioner.resource.translate import FieldTranslator

logger = structlog.get_logger()

_FIELD_BY_CODE = {code: field for field, code in CAPACITY_PARAMETERS}


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AmqpInstanceReconciler:
    """Keeps one declared AMQP instance in sync with the billing API.

    Delete never touches the remote side: the billing API offers no way to
    release a prepaid instance, so destroy only drops local identity.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        client: RpcClient,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        token_factory: Callable[[str], str] | None = None,
    ) -> None:
        endpoints = provider.endpoints
        self._bss = RetryingInvoker(
            client,
            endpoint=endpoints.url(endpoints.bss),
            alternate_endpoint=endpoints.url(endpoints.bss_international),
            version=provider.product.bss_api_version,
            retry=provider.retry,
            sleep=sleep,
        )
        amqp = RetryingInvoker(
            client,
            endpoint=endpoints.url(provider.amqp_host),
            version=provider.product.amqp_api_version,
            retry=provider.retry,
            sleep=sleep,
        )
        self._instances = AmqpOpenService(amqp, page_size=provider.poll.page_size)
        self._billing = BssOpenApiService(self._bss, provider.product)
        self._translator = FieldTranslator(provider.translation)
        self._builder = RequestBuilder(
            provider, self._translator, token_factory=token_factory
        )
        self._poller = ReadinessPoller(provider.poll, sleep=sleep, clock=clock)
        self._timeouts = provider.timeouts
        self._success_code = provider.product.success_code

    # -- Create ----------------------------------------------------------------

    async def create(
        self, config: InstanceConfig, *, deadline: float | None = None
    ) -> InstanceState:
        """Purchase an instance, wait until it is serving, and read it back."""
        if deadline is None:
            deadline = self._timeouts.create_seconds
        request = self._builder.create_request(config)
        response = await self._bss.invoke(CREATE_ACTION, request, deadline)
        ensure_success(CREATE_ACTION, request, response, self._success_code)

        instance_id = str((response.get("Data") or {}).get("InstanceId") or "")
        if not instance_id:
            msg = f"{CREATE_ACTION} returned no InstanceId, response: {response}"
            raise ResponseCodeError(
                msg, action=CREATE_ACTION, request=request, response=response
            )
        logger.info("amqp_instance.created", instance_id=instance_id)

        read_deadline = self._timeouts.read_seconds
        await self._poller.wait(
            instance_id,
            lambda: self._instances.status(instance_id, read_deadline),
            deadline,
        )
        logger.info("amqp_instance.ready", instance_id=instance_id)

        state = await self.read(instance_id)
        if state is None:
            msg = f"amqp instance {instance_id} disappeared after becoming ready"
            raise NotFoundError(msg, action=CREATE_ACTION, instance_id=instance_id)
        return state

    # -- Read ------------------------------------------------------------------

    async def read(
        self, instance_id: str, *, deadline: float | None = None
    ) -> InstanceState | None:
        """Return the translated remote state, or None if the instance is gone."""
        if deadline is None:
            deadline = self._timeouts.read_seconds
        try:
            instance = await self._instances.describe_instance(instance_id, deadline)
        except NotFoundError as exc:
            logger.debug(
                "amqp_instance.not_found", instance_id=instance_id, error=str(exc)
            )
            return None

        billing = await self._billing.query_available_instances(instance_id, deadline)
        translator = self._translator
        unit = instance.get("RenewalDurationUnit", billing.get("RenewalDurationUnit"))
        return InstanceState(
            instance_id=instance_id,
            instance_type=translator.instance_type_from_remote(
                instance.get("InstanceType")
            ),
            status=instance.get("Status"),
            support_eip=instance.get("SupportEIP"),
            payment_type=billing.get("SubscriptionType"),
            renewal_duration=_as_int(billing.get("RenewalDuration")),
            renewal_duration_unit=translator.renewal_unit_from_remote(unit),
            renewal_status=billing.get("RenewStatus"),
        )

    async def import_instance(self, instance_id: str) -> InstanceState | None:
        """Adopt an existing instance by id; identity passes through unchanged."""
        return await self.read(instance_id)

    # -- Update ----------------------------------------------------------------

    async def update(
        self,
        instance_id: str,
        prior: InstanceConfig | None,
        desired: InstanceConfig,
        *,
        new_resource: bool = False,
        deadline: float | None = None,
    ) -> UpdateResult:
        """Send SetRenewal and ModifyInstance for the fields that changed.

        The two requests are independent: a failure in one is recorded in the
        result and does not stop the other.  Configuration errors are raised
        before any request is sent.  Create-only fields (``period``,
        ``logistics``) are left out of the result and only logged when changed.
        """
        if deadline is None:
            deadline = self._timeouts.update_seconds
        if requires_replacement(prior, desired):
            assert prior is not None
            msg = (
                f"instance_type cannot change from {prior.instance_type} to "
                f"{desired.instance_type}; the instance must be replaced"
            )
            raise ConfigurationError(msg, action=MODIFY_ACTION, instance_id=instance_id)
        check_eip_throughput(desired)

        changed = changed_fields(prior, desired)
        create_only = sorted(CREATE_ONLY_FIELDS & changed)
        if create_only:
            logger.warning(
                "amqp_instance.create_only_field_changed",
                instance_id=instance_id,
                fields=create_only,
            )
        result = UpdateResult(
            fields={
                name: FieldOutcome.SKIPPED
                for name in DIFFABLE_FIELDS
                if name != "instance_type" and name not in CREATE_ONLY_FIELDS
            }
        )

        renewal = self._builder.renewal_request(instance_id, desired, changed)
        if renewal is not None:
            await self._apply(
                instance_id,
                RENEWAL_ACTION,
                renewal,
                RENEWAL_FIELDS & changed,
                result,
                deadline,
            )

        modify = self._builder.modify_request(
            instance_id, desired, changed, new_resource=new_resource
        )
        if modify is not None:
            sent = {_FIELD_BY_CODE[p["Code"]] for p in modify["Parameter"]}
            await self._apply(
                instance_id, MODIFY_ACTION, modify, sent, result, deadline
            )

        try:
            result.state = await self.read(instance_id)
        except ProvisionerError as exc:
            logger.error(
                "amqp_instance.refresh_failed", instance_id=instance_id, error=str(exc)
            )
            result.errors["Read"] = exc
        return result

    async def _apply(
        self,
        instance_id: str,
        action: str,
        request: dict[str, Any],
        fields: Collection[str],
        result: UpdateResult,
        deadline: float,
    ) -> None:
        try:
            response = await self._bss.invoke(action, request, deadline)
            ensure_success(action, request, response, self._success_code)
        except ProvisionerError as exc:
            exc.instance_id = exc.instance_id or instance_id
            logger.error(
                "amqp_instance.update_failed",
                instance_id=instance_id,
                action=action,
                fields=sorted(fields),
                error=str(exc),
            )
            result.errors[action] = exc
            outcome = FieldOutcome.FAILED
        else:
            logger.info(
                "amqp_instance.updated",
                instance_id=instance_id,
                action=action,
                fields=sorted(fields),
            )
            outcome = FieldOutcome.APPLIED
        for name in fields:
            result.fields[name] = outcome

    # -- Delete ----------------------------------------------------------------

    async def delete(self, instance_id: str) -> None:
        """Drop local identity only; the remote instance stays provisioned."""
        logger.warning(
            "amqp_instance.delete_skipped",
            instance_id=instance_id,
            detail=(
                "AMQP instances cannot be destroyed through this binding; the "
                "instance is removed from local state but stays provisioned"
            ),
        )

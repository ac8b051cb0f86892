"""Read-side services for the AMQP open API and the billing (BSS) API."""

from __future__ import annotations

from typing import Any

import structlog

from amqp_provisioner.api.errors import NotFoundError
from amqp_provisioner.api.invoker import RetryingInvoker, ensure_success
from amqp_provisioner.config.models import ProductConfig

logger = structlog.get_logger()


class AmqpOpenService:
    """Looks up AMQP instances by id."""

    def __init__(self, invoker: RetryingInvoker, *, page_size: int = 100) -> None:
        self._invoker = invoker
        self._page_size = page_size

    async def describe_instance(
        self, instance_id: str, deadline: float
    ) -> dict[str, Any]:
        """Return the remote instance record, or raise NotFoundError.

        ``ListInstances`` has no id filter, so pages are scanned until the id
        shows up or the listing is exhausted.
        """
        action = "ListInstances"
        request: dict[str, Any] = {"MaxResults": self._page_size}
        while True:
            response = await self._invoker.invoke(action, dict(request), deadline)
            data = response.get("Data") or {}
            for instance in data.get("Instances") or []:
                if str(instance.get("InstanceId")) == instance_id:
                    return dict(instance)
            next_token = data.get("NextToken")
            if not next_token:
                break
            request["NextToken"] = next_token

        msg = f"amqp instance {instance_id} not found"
        raise NotFoundError(msg, action=action, request=request)

    async def status(self, instance_id: str, deadline: float) -> dict[str, Any] | None:
        """Return the instance record, or None while it is not yet listed."""
        try:
            return await self.describe_instance(instance_id, deadline)
        except NotFoundError:
            logger.debug("amqp_instance.not_listed_yet", instance_id=instance_id)
            return None


class BssOpenApiService:
    """Queries billing attributes of purchased instances."""

    def __init__(
        self, invoker: RetryingInvoker, product: ProductConfig | None = None
    ) -> None:
        self._invoker = invoker
        self._product = product or ProductConfig()

    async def query_available_instances(
        self, instance_id: str, deadline: float
    ) -> dict[str, Any]:
        """Return the billing record of *instance_id*, or raise NotFoundError."""
        action = "QueryAvailableInstances"
        request: dict[str, Any] = {
            "InstanceIDs": instance_id,
            "ProductCode": self._product.product_code,
            "ProductType": self._product.product_type,
        }
        response = await self._invoker.invoke(action, request, deadline)
        ensure_success(action, request, response, self._product.success_code)

        instances = (response.get("Data") or {}).get("InstanceList") or []
        for instance in instances:
            if str(instance.get("InstanceID", instance_id)) == instance_id:
                return dict(instance)

        msg = f"billing record for {instance_id} not found"
        raise NotFoundError(msg, action=action, request=request, response=response)

"""Error taxonomy for remote API calls and instance reconciliation."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any

import httpx


class ProvisionerError(Exception):
    """Base error. Carries the action plus request/response echoes for diagnosis."""

    def __init__(
        self,
        message: str,
        *,
        action: str | None = None,
        request: dict[str, Any] | None = None,
        response: dict[str, Any] | None = None,
        instance_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.action = action
        self.instance_id = instance_id
        self.request = request
        self.response = response


class ApiError(ProvisionerError):
    """The remote API answered with an error payload."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int | None = None,
        request_id: str | None = None,
        action: str | None = None,
        request: dict[str, Any] | None = None,
        response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"{action or 'request'} failed: {code}: {message}",
            action=action,
            request=request,
            response=response,
        )
        self.code = code
        self.status_code = status_code
        self.request_id = request_id


class RegionMismatchError(ApiError):
    """The endpoint does not serve the account's site; retry elsewhere."""


class NotFoundError(ProvisionerError):
    """The requested remote instance does not exist."""


class ResponseCodeError(ProvisionerError):
    """Transport succeeded but the response ``Code`` is not the success code."""


class OperationTimeoutError(ProvisionerError, TimeoutError):
    """A retry or polling deadline elapsed."""


class ReadinessError(ProvisionerError):
    """The instance reached a terminal failure state while provisioning."""

    def __init__(self, instance_id: str, status: str) -> None:
        super().__init__(
            f"instance {instance_id} reached terminal state {status!r}",
            action="WaitForState",
            instance_id=instance_id,
        )
        self.status = status


class ConfigurationError(ProvisionerError, ValueError):
    """The declared configuration is invalid; raised before any remote call."""


def is_retryable(exc: BaseException, retryable_codes: Collection[str]) -> bool:
    """Return True for throttling, service-busy and transient network failures."""
    if isinstance(exc, RegionMismatchError):
        return False
    if isinstance(exc, ApiError):
        if exc.code in retryable_codes:
            return True
        return exc.status_code is not None and exc.status_code >= 500
    return isinstance(exc, httpx.TransportError)

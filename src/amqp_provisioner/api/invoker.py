"""Deadline-bounded retrying invoker for remote API actions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_before_delay,
)

from amqp_provisioner.api.client import RpcClient
from amqp_provisioner.api.errors import (
    OperationTimeoutError,
    RegionMismatchError,
    ResponseCodeError,
    is_retryable,
)
from amqp_provisioner.config.models import RetryConfig

logger = structlog.get_logger()


def ensure_success(
    action: str,
    request: dict[str, Any],
    response: dict[str, Any],
    success_code: str = "Success",
) -> dict[str, Any]:
    """Raise ResponseCodeError unless the response ``Code`` is *success_code*."""
    if str(response.get("Code")) != success_code:
        msg = f"{action} failed, response: {response}"
        raise ResponseCodeError(msg, action=action, request=request, response=response)
    return response


class RetryingInvoker:
    """Calls one API product, retrying transient failures until a deadline.

    Retryable failures wait an incrementing backoff (``base``, ``base + inc``,
    ``base + 2 * inc``...).  A region-mismatch error switches the invocation to
    *alternate_endpoint* and retries at once; the switch happens at most once
    per invocation and never leaks into the next one.
    """

    def __init__(
        self,
        client: RpcClient,
        *,
        endpoint: str,
        version: str,
        retry: RetryConfig | None = None,
        alternate_endpoint: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._alternate_endpoint = alternate_endpoint
        self._version = version
        self._retry = retry or RetryConfig()
        self._retryable_codes = frozenset(self._retry.retryable_codes)
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def invoke(
        self, action: str, payload: dict[str, Any], deadline: float
    ) -> dict[str, Any]:
        """Call *action*, retrying for at most *deadline* seconds.

        Returns the parsed response without checking its ``Code``; see
        :func:`ensure_success`.
        """
        endpoint = self._endpoint
        swapped = False
        retries = 0

        def should_retry(exc: BaseException) -> bool:
            if isinstance(exc, RegionMismatchError):
                return self._alternate_endpoint is not None and not swapped
            return is_retryable(exc, self._retryable_codes)

        def backoff(retry_state: RetryCallState) -> float:
            nonlocal retries
            assert retry_state.outcome is not None
            if isinstance(retry_state.outcome.exception(), RegionMismatchError):
                return 0.0
            retries += 1
            return self._retry.base_delay_seconds + self._retry.increment_seconds * (
                retries - 1
            )

        def before_sleep(retry_state: RetryCallState) -> None:
            nonlocal endpoint, swapped
            assert retry_state.outcome is not None
            exc = retry_state.outcome.exception()
            if isinstance(exc, RegionMismatchError):
                assert self._alternate_endpoint is not None
                endpoint = self._alternate_endpoint
                swapped = True
                logger.warning(
                    "api.endpoint_swapped",
                    action=action,
                    endpoint=endpoint,
                    code=exc.code,
                )
                return
            logger.info(
                "api.retry",
                action=action,
                attempt=retry_state.attempt_number,
                wait_seconds=retry_state.upcoming_sleep,
                error=str(exc),
            )

        response: dict[str, Any] = {}
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(should_retry),
                stop=stop_before_delay(deadline),
                wait=backoff,
                before_sleep=before_sleep,
                sleep=self._sleep,
            ):
                with attempt:
                    response = await self._client.call(
                        endpoint, action, self._version, payload
                    )
        except RetryError as exc:
            last = exc.last_attempt.exception()
            msg = f"{action} did not succeed within {deadline:g}s: {last}"
            raise OperationTimeoutError(
                msg,
                action=action,
                request=payload,
                response=getattr(last, "response", None),
            ) from last
        finally:
            logger.debug("api.call", action=action, request=payload, response=response)

        return response


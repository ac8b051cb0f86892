"""Readiness polling for asynchronously provisioned instances."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

from amqp_provisioner.api.errors import OperationTimeoutError, ReadinessError
from amqp_provisioner.config.models import PollConfig

logger = structlog.get_logger()


class PollState(StrEnum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class ReadinessPoller:
    """Polls an instance's ``Status`` until it is ready, failed, or out of time.

    A refresh returning None (instance not listed yet) counts as pending.
    """

    def __init__(
        self,
        config: PollConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or PollConfig()
        self._ready = frozenset(self._config.ready_states)
        self._failed = frozenset(self._config.failure_states)
        self._sleep = sleep
        self._clock = clock

    def classify(self, status: Any) -> PollState:
        if status in self._ready:
            return PollState.READY
        if status in self._failed:
            return PollState.FAILED
        return PollState.PENDING

    async def wait(
        self,
        instance_id: str,
        refresh: Callable[[], Awaitable[dict[str, Any] | None]],
        deadline: float,
    ) -> dict[str, Any]:
        """Return the instance record once ready.

        Raises:
            ReadinessError: The instance reached a failure state.
            OperationTimeoutError: *deadline* seconds passed while pending.
        """
        start = self._clock()
        polls = 0
        while True:
            record = await refresh()
            polls += 1
            status = record.get("Status") if record is not None else None
            state = self.classify(status)
            logger.debug(
                "amqp_instance.poll",
                instance_id=instance_id,
                status=status,
                state=state.value,
                polls=polls,
            )
            if state == PollState.READY:
                assert record is not None
                return record
            if state == PollState.FAILED:
                raise ReadinessError(instance_id, str(status))

            remaining = deadline - (self._clock() - start)
            if remaining <= 0:
                msg = (
                    f"instance {instance_id} not ready after {deadline:g}s "
                    f"(last status: {status!r})"
                )
                raise OperationTimeoutError(
                    msg, action="WaitForState", instance_id=instance_id
                )
            await self._sleep(min(self._config.interval_seconds, remaining))

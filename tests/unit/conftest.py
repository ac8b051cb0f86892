"""Shared fakes for reconciliation unit tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest

from amqp_provisioner.config.models import (
    InstanceConfig,
    PollConfig,
    ProviderConfig,
    RetryConfig,
)

BSS_URL = "https://business.aliyuncs.com/"
BSS_INTL_URL = "https://business.ap-southeast-1.aliyuncs.com/"
AMQP_URL = "https://amqp-open.cn-hangzhou.aliyuncs.com/"


@dataclass
class RecordedCall:
    url: str
    action: str
    version: str
    params: dict[str, Any]


class FakeRpcClient:
    """Stands in for RpcClient; replays scripted results per action.

    The last scripted result for an action repeats once the queue runs dry.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self._scripts: dict[str, list[Any]] = {}

    def script(self, action: str, *results: Any) -> None:
        self._scripts[action] = list(results)

    def actions(self) -> list[str]:
        return [c.action for c in self.calls]

    def calls_for(self, action: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.action == action]

    async def call(
        self, url: str, action: str, version: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(RecordedCall(url, action, version, dict(params)))
        queue = self._scripts[action]
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingSleep:
    """Records requested waits without actually sleeping."""

    def __init__(self) -> None:
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_client() -> FakeRpcClient:
    return FakeRpcClient()


@pytest.fixture
def provider() -> ProviderConfig:
    return ProviderConfig(
        region_id="cn-hangzhou",
        retry=RetryConfig(base_delay_seconds=0.0, increment_seconds=0.0),
        poll=PollConfig(interval_seconds=0.0),
    )


@pytest.fixture
def vip_config() -> InstanceConfig:
    return InstanceConfig(
        instance_type="vip",
        max_tps="1000",
        queue_capacity="100",
        support_eip=True,
        max_eip_tps="50",
        payment_type="Subscription",
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()

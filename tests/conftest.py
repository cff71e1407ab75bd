"""
Shared pytest fixtures for the PTVO UART tests.

Provides:
- In-memory UART endpoint/device fakes
- A recorder standing in for the scheduler's request callback
- zigpy device, endpoint and cluster mocks
- A fast poll scheduler (one scheduler second == 10 ms)
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ptvo import PollScheduler
from ptvo.frames import MULTISTATE_VALUE_CLUSTER_ID, UART_ENDPOINT_ID

DEVICE_IEEE = "00:12:4b:00:22:33:44:55"
FAST_TIME_UNIT = 0.01


def make_cluster():
    """zigpy cluster mock accepting raw attribute writes."""
    cluster = MagicMock()
    cluster.write_attributes_raw = AsyncMock(return_value=[[]])
    return cluster


def make_endpoint(in_clusters=None, out_clusters=None):
    endpoint = MagicMock()
    endpoint.endpoint_id = UART_ENDPOINT_ID
    endpoint.in_clusters = in_clusters or {}
    endpoint.out_clusters = out_clusters or {}
    return endpoint


def make_device(ieee=DEVICE_IEEE, endpoints=None):
    device = MagicMock()
    device.ieee = ieee
    device.endpoints = endpoints if endpoints is not None else {}
    return device


class FakeUartEndpoint:
    """UART endpoint that records writes and lets tests push reports."""

    def __init__(self, clusters=(MULTISTATE_VALUE_CLUSTER_ID,)):
        self.clusters = set(clusters)
        self.writes: List[Any] = []
        self.listeners: List[Callable[[int, Any], None]] = []
        self.error: Optional[Exception] = None

    def supports_cluster(self, cluster_id: int) -> bool:
        return cluster_id in self.clusters

    async def write_attribute(self, request) -> None:
        if self.error is not None:
            raise self.error
        self.writes.append(request)

    def add_report_listener(self, callback):
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    def report(self, attribute_id: int, value: Any) -> None:
        for listener in list(self.listeners):
            listener(attribute_id, value)


class FakeUartDevice:
    def __init__(self, identity: str = DEVICE_IEEE, endpoints: Optional[Dict[int, Any]] = None):
        self._identity = identity
        self.endpoints = endpoints if endpoints is not None else {UART_ENDPOINT_ID: FakeUartEndpoint()}

    @property
    def identity(self) -> str:
        return self._identity

    def get_endpoint(self, endpoint_id: int):
        return self.endpoints.get(endpoint_id)


class RequestRecorder:
    """Async request callback recording (device, channel, loop time)."""

    def __init__(self):
        self.calls: List[Tuple[Any, str, float]] = []
        self.error: Optional[Exception] = None
        self.on_call: Optional[Callable[[Any, str], None]] = None

    async def __call__(self, device_id, channel: str) -> None:
        self.calls.append((device_id, channel, asyncio.get_running_loop().time()))
        if self.on_call is not None:
            self.on_call(device_id, channel)
        if self.error is not None:
            raise self.error

    @property
    def channels(self) -> List[str]:
        return [channel for _device, channel, _at in self.calls]

    async def wait_for_calls(self, count: int, timeout: float = 2.0) -> None:
        async def _wait():
            while len(self.calls) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_wait(), timeout)


@pytest.fixture
def endpoint():
    return FakeUartEndpoint()


@pytest.fixture
def device(endpoint):
    return FakeUartDevice(endpoints={UART_ENDPOINT_ID: endpoint})


@pytest.fixture
def recorder():
    return RequestRecorder()


@pytest_asyncio.fixture
async def scheduler(recorder):
    """Fast scheduler stopped on teardown."""
    poll_scheduler = PollScheduler(recorder, time_unit=FAST_TIME_UNIT)
    yield poll_scheduler
    await poll_scheduler.async_stop_all()

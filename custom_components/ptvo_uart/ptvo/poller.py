"""Self-regulating poll loop that keeps UART sensor readings fresh."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Hashable, List, Optional, Union

from .exceptions import PtvoUartError
from .frames import (
    CHANNEL_DISTANCE,
    CHANNEL_POLL_INTERVAL,
    CHANNEL_TEMPERATURE,
    DEFAULT_POLL_INTERVAL,
    validate_poll_interval,
)

LOGGER = logging.getLogger(__name__)

TEMPERATURE_POLL_DELAY = 1  # seconds between the distance and temperature requests

EVENT_START = "start"
EVENT_STOP = "stop"
EVENT_DEVICE_ANNOUNCE = "deviceAnnounce"

RequestCallback = Callable[[Hashable, str], Awaitable[None]]


class PollState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class PollConfig:
    """Mutable scheduling state for one device."""

    interval_seconds: Union[int, float] = DEFAULT_POLL_INTERVAL
    stop: bool = False
    wake: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class PollRegistry:
    """Owns the poll configs, keyed by device identity."""

    def __init__(self) -> None:
        self._configs: Dict[Hashable, PollConfig] = {}
        self._lock = threading.Lock()

    def __contains__(self, device_id: Hashable) -> bool:
        return device_id in self._configs

    def __len__(self) -> int:
        return len(self._configs)

    def get(self, device_id: Hashable) -> Optional[PollConfig]:
        return self._configs.get(device_id)

    def register(self, device_id: Hashable) -> Optional[PollConfig]:
        """Insert a default config, or return None if the device already has one."""
        with self._lock:
            if device_id in self._configs:
                return None
            config = PollConfig()
            self._configs[device_id] = config
            return config

    def pop(self, device_id: Hashable) -> Optional[PollConfig]:
        with self._lock:
            return self._configs.pop(device_id, None)

    def device_ids(self) -> List[Hashable]:
        with self._lock:
            return list(self._configs)


class PollScheduler:
    """Runs one cooperative distance/temperature poll loop per device.

    Each cycle requests the distance, waits ``temperature_delay`` seconds,
    requests the temperature and then waits out the rest of the poll interval.
    Stopping a device sets its wake event, so a pending wait returns at once
    instead of running to its timeout.

    ``time_unit`` is the length of one scheduler second in real seconds.
    """

    def __init__(
        self,
        request: RequestCallback,
        registry: Optional[PollRegistry] = None,
        *,
        temperature_delay: float = TEMPERATURE_POLL_DELAY,
        time_unit: float = 1.0,
    ) -> None:
        self._request = request
        self._registry = registry if registry is not None else PollRegistry()
        self._temperature_delay = temperature_delay
        self._time_unit = time_unit
        self._states: Dict[Hashable, PollState] = {}

    @property
    def registry(self) -> PollRegistry:
        return self._registry

    def state(self, device_id: Hashable) -> PollState:
        return self._states.get(device_id, PollState.IDLE)

    async def async_handle_event(self, kind: str, device_id: Hashable) -> None:
        """Drive the state machine from a host lifecycle event."""
        if kind == EVENT_STOP:
            await self.async_stop(device_id)
        elif kind in (EVENT_START, EVENT_DEVICE_ANNOUNCE):
            self.start(device_id)
        else:
            LOGGER.debug("Ignoring lifecycle event %s for %s", kind, device_id)

    def start(self, device_id: Hashable) -> bool:
        """Start polling a device; returns False when a loop already runs."""
        config = self._registry.register(device_id)
        if config is None:
            LOGGER.debug("Poll loop for %s already registered", device_id)
            return False
        self._states[device_id] = PollState.RUNNING
        config.task = asyncio.get_running_loop().create_task(
            self._poll(device_id, config), name=f"ptvo_uart_poll_{device_id}"
        )
        return True

    def stop(self, device_id: Hashable) -> Optional[asyncio.Task]:
        """Flag the loop to stop, wake any pending wait and deregister it."""
        config = self._registry.pop(device_id)
        if config is None:
            return None
        config.stop = True
        config.wake.set()
        self._states[device_id] = PollState.STOPPED
        return config.task

    async def async_stop(self, device_id: Hashable) -> None:
        """Stop a device and wait for its loop to finish the current step."""
        task = self.stop(device_id)
        if task is None or task.done() or task is asyncio.current_task():
            return
        await task

    async def async_stop_all(self) -> None:
        for device_id in self._registry.device_ids():
            await self.async_stop(device_id)

    def set_interval(self, device_id: Hashable, value: object) -> Dict[str, Union[int, float]]:
        """Validate and apply a new poll interval for a device.

        A device without a running loop only gets the returned state; the
        caller tracks it and the next inbound report re-applies it.
        """
        seconds = validate_poll_interval(value)
        config = self._registry.get(device_id)
        if config is not None:
            config.interval_seconds = seconds
        LOGGER.debug("Poll interval for %s set to %ss", device_id, seconds)
        return {CHANNEL_POLL_INTERVAL: seconds}

    async def _poll(self, device_id: Hashable, config: PollConfig) -> None:
        LOGGER.info("Starting UART poll loop for %s", device_id)
        try:
            while not config.stop:
                await self._request_quietly(device_id, CHANNEL_DISTANCE)
                if config.stop:
                    break
                if await self._wait(config, self._temperature_delay):
                    break
                await self._request_quietly(device_id, CHANNEL_TEMPERATURE)
                if config.stop:
                    break
                # Interval is read here so a change applies to this cycle's tail
                await self._wait(config, config.interval_seconds - self._temperature_delay)
        finally:
            LOGGER.info("UART poll loop for %s stopped", device_id)

    async def _wait(self, config: PollConfig, seconds: float) -> bool:
        """Sleep unless woken by stop; returns the stop flag afterwards."""
        try:
            await asyncio.wait_for(config.wake.wait(), timeout=max(seconds, 0) * self._time_unit)
        except asyncio.TimeoutError:
            pass
        return config.stop

    async def _request_quietly(self, device_id: Hashable, channel: str) -> None:
        try:
            await self._request(device_id, channel)
        except PtvoUartError as exc:
            # Device temporarily unreachable; retry on the next tick
            LOGGER.debug("Polling %s from %s failed: %s", channel, device_id, exc)
        except Exception as exc:  # pragma: no cover
            LOGGER.warning("Unexpected error polling %s from %s: %s", channel, device_id, exc)


__all__ = [
    "EVENT_DEVICE_ANNOUNCE",
    "EVENT_START",
    "EVENT_STOP",
    "PollConfig",
    "PollRegistry",
    "PollScheduler",
    "PollState",
    "TEMPERATURE_POLL_DELAY",
]

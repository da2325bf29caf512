import asyncio
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from status_monitor.cadence import CadencePolicy, FixedCadence
from status_monitor.client import StatusClient
from status_monitor.errors import (
    ConfigurationError,
    PollingClientCancelled,
    PollingClientTimeout,
)
from status_monitor.models import Duration, StatusResult

Probe = Callable[[], Awaitable[StatusResult]]


class PollingOptions(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    probe: Optional[Probe] = None
    frequency: Optional[Duration] = None
    timeout: Optional[Duration] = None
    cadence: CadencePolicy = Field(default_factory=FixedCadence)


class PollingClient(StatusClient):
    """Invokes a status probe on a fixed cadence until it reports completion.

    The first probe runs immediately. Every following probe is scheduled
    relative to the start of observation, so slow probes do not push the
    schedule back. The timeout is checked only after a probe returns: a
    probe whose scheduled start falls on or after the deadline is never
    issued, and a probe already running is always awaited to its end.
    """

    def __init__(self, options: PollingOptions):
        super().__init__()
        self.options = options
        self._cancelled = asyncio.Event()

    @classmethod
    def create(cls, options: PollingOptions) -> "PollingClient":
        """Validate the options and return a client that has not started polling"""
        if options is None:
            raise ConfigurationError("Polling options are required")
        if options.probe is None or not callable(options.probe):
            raise ConfigurationError("A callable probe is required")
        for field in ("frequency", "timeout"):
            value = getattr(options, field)
            if value is None:
                raise ConfigurationError(f"{field} is required")
            if value.to_milliseconds() <= 0:
                raise ConfigurationError(f"{field} must be positive, got {value}")
        return cls(options)

    def cancel(self) -> None:
        """Request that observe() stop before its next probe"""
        self._cancelled.set()

    async def _probe_once(self, attempt: int) -> StatusResult:
        self.logger.debug(f"Probing operation status (attempt {attempt})")
        try:
            result = await self.options.probe()
        except Exception as e:
            self.logger.error(f"Probe failed on attempt {attempt}: {e!r}")
            raise

        if isinstance(result, dict):
            result = StatusResult.model_validate(result)
        return result

    def _raise_if_cancelled(self, attempts: int) -> None:
        if self._cancelled.is_set():
            self.logger.warning(f"Polling cancelled after {attempts} attempt(s)")
            raise PollingClientCancelled(f"Polling cancelled after {attempts} attempt(s)")

    async def _wait_until(self, deadline: float, attempts: int) -> None:
        """Wait until the loop time ``deadline`` unless cancelled first"""
        delay = max(0.0, deadline - asyncio.get_running_loop().time())
        self.logger.debug(
            f"Operation still pending, waiting {delay:.3f}s before next attempt"
        )
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self._raise_if_cancelled(attempts)

    async def observe(self) -> Any:
        """Poll until the probe reports completion and return its payload"""
        self._claim_observation()
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        timeout_ms = self.options.timeout.to_milliseconds()
        next_start_ms = 0.0
        attempt = 0

        while True:
            self._raise_if_cancelled(attempt)
            attempt += 1
            status = await self._probe_once(attempt)

            if status.completed:
                self.logger.info(f"Operation completed after {attempt} attempt(s)")
                return status.payload

            next_start_ms += self.options.cadence.delay(
                attempt, self.options.frequency
            ).to_milliseconds()
            elapsed_ms = (loop.time() - started_at) * 1000
            if next_start_ms >= timeout_ms or elapsed_ms >= timeout_ms:
                self.logger.warning(
                    f"Operation did not complete within {self.options.timeout} "
                    f"({attempt} attempt(s))"
                )
                raise PollingClientTimeout(
                    f"Operation did not complete within {self.options.timeout}"
                )

            await self._wait_until(started_at + next_start_ms / 1000, attempt)

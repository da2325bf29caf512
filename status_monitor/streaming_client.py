import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from status_monitor.client import StatusClient
from status_monitor.errors import (
    ConfigurationError,
    InvalidStateError,
    StreamingClientTimeout,
)
from status_monitor.models import (
    Duration,
    StatusResult,
    SubscriptionDelivered,
    SubscriptionFailed,
    SubscriptionResult,
)

MessageHandler = Callable[[dict], None]


class CometSubscription(ABC):
    """A subscription to one channel that settles exactly once.

    Transports call ``_settle`` with either ``SubscriptionDelivered`` or
    ``SubscriptionFailed``; every registered listener sees that result.
    Listeners registered after settling are called on the next loop tick,
    which is after any messages the transport queued while settling: the
    "complete before messages" order holds only for listeners registered
    before the subscription settles.
    """

    def __init__(self):
        self.logger = logger
        self._result: Optional[SubscriptionResult] = None
        self._callbacks: List[Callable[[], None]] = []
        self._errbacks: List[Callable[[BaseException], None]] = []
        self._listeners: List[Callable[[SubscriptionResult], None]] = []

    @property
    def result(self) -> Optional[SubscriptionResult]:
        return self._result

    def callback(self, fn: Callable[[], None]) -> None:
        self._callbacks.append(fn)
        self._replay_if_settled()

    def errback(self, fn: Callable[[BaseException], None]) -> None:
        self._errbacks.append(fn)
        self._replay_if_settled()

    def on_result(self, fn: Callable[[SubscriptionResult], None]) -> None:
        self._listeners.append(fn)
        self._replay_if_settled()

    def _replay_if_settled(self) -> None:
        if self._result is not None:
            asyncio.get_running_loop().call_soon(self._notify)

    def _settle(self, result: SubscriptionResult) -> None:
        if self._result is not None:
            return
        self._result = result
        self._notify()

    def _notify(self) -> None:
        callbacks, errbacks, listeners = self._callbacks, self._errbacks, self._listeners
        self._callbacks, self._errbacks, self._listeners = [], [], []

        if isinstance(self._result, SubscriptionFailed):
            calls = [(fn, (self._result.error,)) for fn in errbacks]
        else:
            calls = [(fn, ()) for fn in callbacks]
        calls += [(fn, (self._result,)) for fn in listeners]

        # a failing listener must not keep the others (e.g. message replay) from running
        for fn, args in calls:
            try:
                fn(*args)
            except Exception:
                self.logger.exception(f"Subscription listener {fn!r} failed")


class CometClient(ABC):
    """Push transport: handshake, then subscribe to a channel"""

    def __init__(self, url: str):
        self.url = url

    def add_extension(self, extension: Any) -> None:
        pass

    def disable(self, label: str) -> None:
        pass

    def set_header(self, name: str, value: str) -> None:
        pass

    @abstractmethod
    def handshake(self, callback: Callable[[], None]) -> None:
        """Negotiate the connection and call ``callback`` once, without blocking"""

    @abstractmethod
    def subscribe(self, channel: str, on_message: MessageHandler) -> CometSubscription:
        """Subscribe to ``channel``; messages are passed to ``on_message`` in order"""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection; calling it again is a no-op"""


class StreamingOptions(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: str = ""
    channel: Optional[str] = None
    stream_processor: Optional[Callable[[dict], StatusResult]] = None
    handshake_timeout: Duration = Field(default_factory=lambda: Duration.seconds(30))
    subscribe_timeout: Duration = Field(default_factory=lambda: Duration.minutes(3))


class StreamingClient(StatusClient):
    """Observes an operation through status messages pushed on a channel"""

    def __init__(self, options: StreamingOptions, comet_client: CometClient):
        super().__init__()
        self.options = options
        self.comet_client = comet_client
        self._handshake_complete = False
        self._disconnected = False

    @classmethod
    def create(cls, options: StreamingOptions, comet_client: CometClient) -> "StreamingClient":
        if options is None:
            raise ConfigurationError("Streaming options are required")
        if comet_client is None:
            raise ConfigurationError("A comet client is required")
        if not options.channel:
            raise ConfigurationError("channel is required")
        if options.stream_processor is None or not callable(options.stream_processor):
            raise ConfigurationError("A callable stream_processor is required")
        for field in ("handshake_timeout", "subscribe_timeout"):
            value = getattr(options, field)
            if value.to_milliseconds() <= 0:
                raise ConfigurationError(f"{field} must be positive, got {value}")
        return cls(options, comet_client)

    @staticmethod
    async def _settled_within(future: asyncio.Future, timeout: Duration) -> bool:
        done, _ = await asyncio.wait({future}, timeout=timeout.to_seconds())
        return bool(done)

    async def handshake(self) -> None:
        loop = asyncio.get_running_loop()
        connected = loop.create_future()

        def on_handshake() -> None:
            if not connected.done():
                connected.set_result(None)

        self.logger.debug(f"Handshaking with {self.options.url or self.comet_client.url}")
        self.comet_client.handshake(on_handshake)

        if not await self._settled_within(connected, self.options.handshake_timeout):
            connected.cancel()
            self.logger.warning(
                f"Handshake did not complete within {self.options.handshake_timeout}"
            )
            raise StreamingClientTimeout(
                f"Handshake did not complete within {self.options.handshake_timeout}"
            )
        self._handshake_complete = True

    async def subscribe(self) -> Any:
        """Process channel messages until one reports completion and return its payload"""
        if not self._handshake_complete:
            raise InvalidStateError("subscribe() requires a completed handshake")

        loop = asyncio.get_running_loop()
        outcome = loop.create_future()
        channel = self.options.channel

        def on_message(message: dict) -> None:
            if outcome.done():
                return
            try:
                status = self.options.stream_processor(message)
                if isinstance(status, dict):
                    status = StatusResult.model_validate(status)
                completed, payload = status.completed, status.payload
            except Exception as e:
                self.logger.error(f"Stream processor failed on {channel}: {e!r}")
                outcome.set_exception(e)
                return
            if completed:
                outcome.set_result(payload)

        def on_error(error: BaseException) -> None:
            self.logger.error(f"Subscription to {channel} failed: {error!r}")
            if not outcome.done():
                outcome.set_exception(error)

        def on_result(result: SubscriptionResult) -> None:
            if isinstance(result, SubscriptionDelivered):
                self.logger.debug(f"Subscribed to {channel}")

        subscription = self.comet_client.subscribe(channel, on_message)
        subscription.errback(on_error)
        subscription.on_result(on_result)

        try:
            if not await self._settled_within(outcome, self.options.subscribe_timeout):
                outcome.cancel()
                self.logger.warning(
                    f"No completed status on {channel} within {self.options.subscribe_timeout}"
                )
                raise StreamingClientTimeout(
                    f"No completed status on {channel} within {self.options.subscribe_timeout}"
                )
            payload = outcome.result()
            self.logger.info(f"Operation completed on {channel}")
            return payload
        finally:
            await self.disconnect()

    async def observe(self) -> Any:
        self._claim_observation()
        try:
            await self.handshake()
        except BaseException:
            await self.disconnect()
            raise
        return await self.subscribe()

    async def disconnect(self) -> None:
        if self._disconnected:
            return
        self._disconnected = True
        await self.comet_client.disconnect()

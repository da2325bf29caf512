"""Test doubles and helpers for code built on the status clients.

``StreamingMockCometClient`` stands in for a real push transport: it
answers the handshake on the next loop tick and replays a scripted
playlist of messages, one per tick, once the subscription is delivered.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from status_monitor.errors import StatusMonitorError, SubscriptionFailure
from status_monitor.models import (
    SubscriptionDelivered,
    SubscriptionFailed,
    SubscriptionResult,
)
from status_monitor.streaming_client import CometClient, CometSubscription, MessageHandler


class SubscriptionCall(Enum):
    CALLBACK = "callback"
    ERRORBACK = "errorback"


class StreamingMockOptions(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: str
    id: str
    subscription_call: SubscriptionCall = SubscriptionCall.CALLBACK
    subscription_errback_error: Optional[BaseException] = None
    message_playlist: Optional[List[dict]] = None


class StreamingMockCometSubscription(CometSubscription):
    """Settles on the next loop tick according to ``subscription_call``"""

    def __init__(self, options: StreamingMockOptions, channel: str):
        super().__init__()
        self.options = options
        self.channel = channel
        asyncio.get_running_loop().call_soon(self._settle, self._scripted_result())

    def _scripted_result(self) -> SubscriptionResult:
        if self.options.subscription_call is SubscriptionCall.CALLBACK:
            return SubscriptionDelivered()
        error = self.options.subscription_errback_error or SubscriptionFailure(
            f"Subscription to {self.channel} failed"
        )
        return SubscriptionFailed(error=error)


class StreamingMockCometClient(CometClient):
    def __init__(self, options: StreamingMockOptions):
        super().__init__(options.url)
        self.options = options
        self.playlist = (
            list(options.message_playlist)
            if options.message_playlist is not None
            else [{"id": options.id}]
        )
        self.disconnect_count = 0

    def handshake(self, callback: Callable[[], None]) -> None:
        asyncio.get_running_loop().call_soon(callback)

    def subscribe(self, channel: str, on_message: MessageHandler) -> CometSubscription:
        subscription = StreamingMockCometSubscription(self.options, channel)

        def replay(result: SubscriptionResult) -> None:
            if not isinstance(result, SubscriptionDelivered):
                return
            # call_soon runs callbacks in FIFO order
            loop = asyncio.get_running_loop()
            for message in self.playlist:
                loop.call_soon(on_message, message)

        subscription.on_result(replay)
        return subscription

    async def disconnect(self) -> None:
        self.disconnect_count += 1


class UnexpectedResult(StatusMonitorError):
    name = "UnexpectedResult"


async def should_throw(awaitable: Awaitable[Any]) -> None:
    """Await ``awaitable`` and raise ``UnexpectedResult`` if it does not raise"""
    await awaitable
    raise UnexpectedResult("This code was expected to fail")


def uniqid() -> str:
    return uuid.uuid4().hex


class MonitorTestContext(BaseModel):
    """Per-session test state, created once and passed to tests explicitly"""

    id: str = Field(default_factory=uniqid)
    records: List[dict] = Field(default_factory=list)
    sink_id: Optional[int] = None

    @classmethod
    def create(cls, level: str = "DEBUG") -> "MonitorTestContext":
        context = cls()
        context.sink_id = logger.add(context._capture, level=level, format="{message}")
        return context

    def _capture(self, message) -> None:
        record = message.record
        self.records.append({"level": record["level"].name, "message": record["message"]})

    def uniqid(self) -> str:
        return uniqid()

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [r["message"] for r in self.records if level is None or r["level"] == level]

    def clear(self) -> None:
        self.records.clear()

    def close(self) -> None:
        if self.sink_id is not None:
            logger.remove(self.sink_id)
            self.sink_id = None

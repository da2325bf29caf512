from enum import Enum
from functools import total_ordering
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict


class TimeUnit(str, Enum):
    milliseconds = "milliseconds"
    seconds = "seconds"
    minutes = "minutes"
    hours = "hours"
    days = "days"


_MS_PER_UNIT = {
    TimeUnit.milliseconds: 1,
    TimeUnit.seconds: 1000,
    TimeUnit.minutes: 60 * 1000,
    TimeUnit.hours: 60 * 60 * 1000,
    TimeUnit.days: 24 * 60 * 60 * 1000,
}


@total_ordering
class Duration(BaseModel):
    """An amount of time; compares and combines by its millisecond value"""

    model_config = ConfigDict(frozen=True)

    amount: float
    unit: TimeUnit = TimeUnit.milliseconds

    def __init__(self, amount: float, unit: TimeUnit = TimeUnit.milliseconds, **data):
        super().__init__(amount=amount, unit=unit, **data)

    @classmethod
    def milliseconds(cls, amount: float) -> "Duration":
        return cls(amount, TimeUnit.milliseconds)

    @classmethod
    def seconds(cls, amount: float) -> "Duration":
        return cls(amount, TimeUnit.seconds)

    @classmethod
    def minutes(cls, amount: float) -> "Duration":
        return cls(amount, TimeUnit.minutes)

    def to_milliseconds(self) -> float:
        return self.amount * _MS_PER_UNIT[self.unit]

    def to_seconds(self) -> float:
        return self.to_milliseconds() / 1000

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self.to_milliseconds() == other.to_milliseconds()

    def __lt__(self, other: "Duration") -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self.to_milliseconds() < other.to_milliseconds()

    def __hash__(self) -> int:
        return hash(self.to_milliseconds())

    def __add__(self, other: "Duration") -> "Duration":
        return Duration.milliseconds(self.to_milliseconds() + other.to_milliseconds())

    def __sub__(self, other: "Duration") -> "Duration":
        return Duration.milliseconds(self.to_milliseconds() - other.to_milliseconds())

    def __mul__(self, factor: float) -> "Duration":
        return Duration.milliseconds(self.to_milliseconds() * factor)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return f"{self.amount:g} {self.unit.value}"


class StatusResult(BaseModel):
    """One observation of a monitored operation; payload is final only when completed"""

    model_config = ConfigDict(frozen=True)

    completed: bool
    payload: Any = None


class JobStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    error = "error"


class SubscriptionDelivered(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["delivered"] = "delivered"


class SubscriptionFailed(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["failed"] = "failed"
    error: BaseException


SubscriptionResult = Union[SubscriptionDelivered, SubscriptionFailed]

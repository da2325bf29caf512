import random
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from status_monitor.models import Duration


class CadencePolicy(ABC):
    @abstractmethod
    def delay(self, attempt: int, frequency: Duration) -> Duration:
        """Delay between the start of probe ``attempt`` and the next one (attempt counts from 1)"""


class FixedCadence(CadencePolicy):
    def delay(self, attempt: int, frequency: Duration) -> Duration:
        return frequency

    def __repr__(self) -> str:
        return "FixedCadence()"


class BackoffCadence(BaseModel, CadencePolicy):
    model_config = ConfigDict(frozen=True)

    backoff_factor: float = 2.0
    max_delay: Duration = Field(default_factory=lambda: Duration.seconds(32))
    jitter: bool = False

    def delay(self, attempt: int, frequency: Duration) -> Duration:
        """Calculates the delay using exponential backoff with an optional jitter"""
        delay = min(
            frequency * (self.backoff_factor ** (attempt - 1)),
            self.max_delay,
        )

        # Add random jitter between 0-20% of the delay
        if self.jitter:
            delay = delay * (1 + 0.2 * random.random())
        return delay

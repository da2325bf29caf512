from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from status_monitor.errors import InvalidStateError


class StatusClient(ABC):
    """Observes a remote operation until it completes, or fails"""

    def __init__(self):
        self.logger = logger
        self._observed = False

    def _claim_observation(self) -> None:
        """Each client instance drives exactly one observation"""
        if self._observed:
            raise InvalidStateError(
                f"{type(self).__name__} already observed; create a new client"
            )
        self._observed = True

    @abstractmethod
    async def observe(self) -> Any:
        """Resolve with the operation's final payload or raise a typed error"""

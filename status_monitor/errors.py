"""Error types raised by the status clients.

Every error carries a ``name`` discriminant so callers can branch on the
outcome of ``observe()``. Errors raised by caller-supplied probes,
stream processors or transports are never wrapped in these types.
"""

from typing import Optional


class StatusMonitorError(Exception):
    name = "StatusMonitorError"

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class ConfigurationError(StatusMonitorError, ValueError):
    """Invalid or missing client options"""

    name = "ConfigurationError"


class InvalidStateError(StatusMonitorError):
    """Operation called in the wrong lifecycle state of a client"""

    name = "InvalidStateError"


class PollingClientTimeout(StatusMonitorError, TimeoutError):
    """No completed result was observed before the configured timeout"""

    name = "PollingClientTimeout"


class PollingClientCancelled(StatusMonitorError):
    name = "PollingClientCancelled"


class StreamingClientTimeout(StatusMonitorError, TimeoutError):
    name = "StreamingClientTimeout"


class SubscriptionFailure(StatusMonitorError):
    """Default error delivered through a subscription's error-back"""

    name = "SubscriptionFailure"


class RemoteJobError(StatusMonitorError):
    """The remote job reported that it failed"""

    name = "RemoteJobError"

    def __init__(self, message: str = "", raw_response: Optional[dict] = None):
        self.raw_response = raw_response or {}
        super().__init__(message)

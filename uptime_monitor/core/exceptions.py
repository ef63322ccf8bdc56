"""Error kinds raised inside the checking and notification engine."""

from typing import Optional


class MonitorError(Exception):
    """Base class for engine errors."""
    pass


class ProbeError(MonitorError):
    """
    A probe could not classify the target as up.

    Probe errors never leave the prober; they are converted into a
    ``down`` result whose error detail is ``detail``.
    """

    def __init__(self, detail: str, latency_ms: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.latency_ms = latency_ms


class ProbeTimeout(ProbeError):
    """The request did not complete within the probe timeout."""

    DETAIL = "Timeout"

    def __init__(self):
        super().__init__(self.DETAIL)


class ProbeNetworkError(ProbeError):
    """Connection, DNS, TLS or redirect failure."""
    pass


class ProbeHttpError(ProbeError):
    """The final response was not ok (status >= 400)."""

    def __init__(self, status_code: int, latency_ms: Optional[int] = None):
        super().__init__(f"HTTP {status_code}", latency_ms=latency_ms)
        self.status_code = status_code


class StoreUnavailable(MonitorError):
    """The persistent store rejected or failed a statement."""
    pass


class NotifierFailure(MonitorError):
    """The notifier delegate could not deliver a message."""
    pass

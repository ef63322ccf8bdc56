"""URL prober performing one HTTP GET per check and classifying the result."""

import asyncio
import time
from datetime import datetime
from typing import Optional

import aiohttp

from uptime_monitor.core.exceptions import (
    ProbeError,
    ProbeHttpError,
    ProbeNetworkError,
    ProbeTimeout,
)
from uptime_monitor.models.monitor import MonitorStatus
from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_USER_AGENT = "Uptime-Monitor/1.0"


def normalize_url(url: str) -> str:
    """
    Prepend ``https://`` to URLs entered without a scheme.

    Args:
        url: URL as registered by the user

    Returns:
        str: URL with an explicit http or https scheme
    """
    url = url.strip()
    if url.lower().startswith(("http://", "https://")):
        return url
    return "https://" + url


class ProbeResult:
    """Classified outcome of a single probe."""

    def __init__(
        self,
        status: MonitorStatus,
        latency_ms: Optional[int] = None,
        error_detail: Optional[str] = None,
        status_code: Optional[int] = None,
        checked_at: Optional[datetime] = None
    ):
        """
        Initialize probe result.

        Args:
            status: ``up`` or ``down``
            latency_ms: Time until the final response arrived (None if none arrived)
            error_detail: ``"Timeout"``, ``"HTTP <code>"`` or the network error text
            status_code: Final HTTP status code, if a response arrived
            checked_at: When the probe was dispatched
        """
        self.status = status
        self.latency_ms = latency_ms
        self.error_detail = error_detail
        self.status_code = status_code
        self.checked_at = checked_at or datetime.utcnow()

    @property
    def is_up(self) -> bool:
        return self.status == MonitorStatus.UP

    def __repr__(self) -> str:
        return (
            f"<ProbeResult(status={self.status.value}, "
            f"latency_ms={self.latency_ms}, "
            f"error_detail={self.error_detail!r})>"
        )


class URLProber:
    """
    Performs single HTTP probes against monitored URLs.

    One GET per probe, bounded by a total timeout, following at most
    ``max_redirects`` redirects. There are no retries: a failed attempt is
    classified ``down`` immediately.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        """
        Initialize prober.

        Args:
            timeout: Total request timeout in seconds
            max_redirects: Maximum redirect hops to follow
            user_agent: User-Agent header sent with each probe
        """
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info(
            "URL prober initialized",
            extra={
                "timeout": timeout,
                "max_redirects": max_redirects
            }
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Start the HTTP session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent}
            )
            logger.info("HTTP session started")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("HTTP session closed")

    async def probe(self, url: str) -> ProbeResult:
        """
        Probe a URL and classify it as up or down.

        Never raises: timeouts, network failures and non-ok responses all
        resolve to a ``down`` result with ``error_detail`` populated.

        Args:
            url: Target URL (scheme optional)

        Returns:
            ProbeResult: Classified result

        Example:
            ```python
            async with URLProber(timeout=10) as prober:
                result = await prober.probe("example.com")
                print(result.status, result.latency_ms)
            ```
        """
        target = normalize_url(url)
        checked_at = datetime.utcnow()

        try:
            status_code, latency_ms = await self._dispatch(target)
        except ProbeError as e:
            status_code = e.status_code if isinstance(e, ProbeHttpError) else None
            logger.warning(
                "Probe classified down",
                extra={
                    "url": target,
                    "error": e.detail,
                    "status_code": status_code
                }
            )
            return ProbeResult(
                status=MonitorStatus.DOWN,
                latency_ms=e.latency_ms,
                error_detail=e.detail,
                status_code=status_code,
                checked_at=checked_at
            )

        logger.debug(
            "Probe classified up",
            extra={
                "url": target,
                "status_code": status_code,
                "latency_ms": latency_ms
            }
        )
        return ProbeResult(
            status=MonitorStatus.UP,
            latency_ms=latency_ms,
            status_code=status_code,
            checked_at=checked_at
        )

    async def _dispatch(self, url: str) -> tuple:
        """
        Perform the GET request.

        Args:
            url: Normalized target URL

        Returns:
            tuple: (status_code, latency_ms) of an ok final response

        Raises:
            ProbeTimeout: The request exceeded the timeout
            ProbeNetworkError: No response could be obtained
            ProbeHttpError: The final response was not ok
        """
        if not self.session:
            await self.start()

        start_time = time.monotonic()

        try:
            async with self.session.get(
                url,
                allow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                await response.read()
                latency_ms = int((time.monotonic() - start_time) * 1000)

                if not response.ok:
                    raise ProbeHttpError(response.status, latency_ms=latency_ms)

                return response.status, latency_ms

        except asyncio.TimeoutError:
            raise ProbeTimeout()

        except aiohttp.ClientError as e:
            raise ProbeNetworkError(str(e) or e.__class__.__name__)

        except (OSError, ValueError) as e:
            raise ProbeNetworkError(str(e) or e.__class__.__name__)

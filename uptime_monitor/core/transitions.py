"""Transition detection, downtime accounting and alert dispatch."""

from datetime import datetime
from typing import Optional

from uptime_monitor.core.exceptions import NotifierFailure, StoreUnavailable
from uptime_monitor.core.history import HistoryRecorder
from uptime_monitor.core.metrics import metrics_collector
from uptime_monitor.core.notifier import Notifier, NotificationResult
from uptime_monitor.core.store import MonitorRecord, MonitorStore
from uptime_monitor.models.monitor import MonitorStatus
from uptime_monitor.models.notification_log import NotificationKind
from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)

DURATION_UNITS = (
    ("day", 24 * 60 * 60),
    ("hour", 60 * 60),
    ("minute", 60),
    ("second", 1),
)


class Transition:
    """Result of applying one observation to a monitor's state."""

    def __init__(
        self,
        previous: MonitorStatus,
        new_state: MonitorStatus,
        notification: Optional[NotificationKind] = None
    ):
        self.previous = previous
        self.new_state = new_state
        self.notification = notification

    @property
    def changed(self) -> bool:
        return self.previous != self.new_state

    def __eq__(self, other) -> bool:
        if not isinstance(other, Transition):
            return NotImplemented
        return (
            self.previous == other.previous
            and self.new_state == other.new_state
            and self.notification == other.notification
        )

    def __repr__(self) -> str:
        notification = self.notification.value if self.notification else None
        return (
            f"<Transition({self.previous.value} -> {self.new_state.value}, "
            f"notification={notification})>"
        )


def next_state(current: MonitorStatus, observed: MonitorStatus) -> Transition:
    """
    Apply an observation to the current state.

    ``pending`` establishes a baseline without notifying; only ``up -> down``
    and ``down -> up`` owe a notification.

    Args:
        current: State before the check
        observed: Classification of the check (``up`` or ``down``)

    Returns:
        Transition: New state and the notification owed, if any

    Raises:
        ValueError: If ``observed`` is ``pending``
    """
    current = MonitorStatus(current)
    observed = MonitorStatus(observed)

    if observed == MonitorStatus.PENDING:
        raise ValueError("observed status must be 'up' or 'down'")

    notification = None
    if current == MonitorStatus.UP and observed == MonitorStatus.DOWN:
        notification = NotificationKind.DOWN
    elif current == MonitorStatus.DOWN and observed == MonitorStatus.UP:
        notification = NotificationKind.UP

    return Transition(previous=current, new_state=observed, notification=notification)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_duration(milliseconds: float) -> str:
    """
    Render a duration with its largest non-zero unit and the next one.

    The second unit is dropped when it is zero.

    Example:
        ```python
        format_duration(7300000)   # "2 hours 1 minute"
        format_duration(45000)     # "45 seconds"
        format_duration(90000000)  # "1 day 1 hour"
        ```
    """
    remaining = max(int(milliseconds // 1000), 0)

    counts = []
    for unit, size in DURATION_UNITS:
        count, remaining = divmod(remaining, size)
        counts.append((unit, count))

    for index, (unit, count) in enumerate(counts):
        if count == 0:
            continue
        parts = [_plural(count, unit)]
        if index + 1 < len(counts):
            next_unit, next_count = counts[index + 1]
            if next_count:
                parts.append(_plural(next_count, next_unit))
        return " ".join(parts)

    return _plural(0, "second")


class TransitionNotifier:
    """
    Decides whether a check owes an alert and delivers it.

    Every attempt is written to the notification log; a failing notifier
    never raises out of ``handle``.
    """

    def __init__(
        self,
        notifier: Notifier,
        store: MonitorStore,
        history: HistoryRecorder,
        enabled: bool = True
    ):
        """
        Initialize transition notifier.

        Args:
            notifier: Delegate delivering alerts
            store: Store for notification bookkeeping
            history: Recorder used to locate the last down check
            enabled: Global switch; when off no alert is sent for any monitor
        """
        self.notifier = notifier
        self.store = store
        self.history = history
        self.enabled = enabled

    async def handle(
        self,
        monitor: MonitorRecord,
        observed: MonitorStatus,
        now: Optional[datetime] = None
    ) -> Optional[NotificationResult]:
        """
        Process one observation for a monitor.

        Args:
            monitor: Snapshot taken before the check (its status is the prior state)
            observed: Classification of the check
            now: Time of the check

        Returns:
            NotificationResult: Outcome of the attempt, or None if nothing was owed
        """
        now = now or datetime.utcnow()
        transition = next_state(monitor.status, observed)

        if transition.changed:
            log = logger.warning if transition.new_state == MonitorStatus.DOWN else logger.info
            log(
                "Monitor status changed",
                extra={
                    "monitor_id": monitor.id,
                    "url": monitor.url,
                    "previous": transition.previous.value,
                    "current": transition.new_state.value
                }
            )

        if transition.notification is None:
            return None

        if not (self.enabled and monitor.notifications_enabled):
            logger.debug(
                "Notifications disabled, skipping alert",
                extra={"monitor_id": monitor.id, "notification_type": transition.notification.value}
            )
            return None

        if transition.notification == NotificationKind.DOWN:
            result = await self._send_down(monitor)
        else:
            result = await self._send_up(monitor, now)

        # The log entry goes first so a sent alert is always accounted for
        metrics_collector.record_notification(transition.notification.value, result.success)
        await self.store.log_notification(
            monitor_id=monitor.id,
            user_email=monitor.user_email,
            kind=transition.notification,
            success=result.success,
            error_message=result.error,
            sent_at=now
        )

        if transition.notification == NotificationKind.DOWN and result.success:
            try:
                await self.store.mark_notification_sent(monitor.id, now)
            except StoreUnavailable as e:
                logger.error(
                    "Could not record notification time",
                    extra={"monitor_id": monitor.id, "error": str(e)}
                )

        return result

    async def downtime(self, monitor: MonitorRecord, now: datetime) -> Optional[str]:
        """
        Format the outage duration ending at ``now``.

        Measured from the most recent down check; falls back to the last
        notification time when the history holds no down check.
        """
        since = await self.history.last_down_at(monitor.id, before=now)
        if since is None:
            since = monitor.last_notification_sent
        if since is None:
            return None
        return format_duration((now - since).total_seconds() * 1000)

    async def _send_down(self, monitor: MonitorRecord) -> NotificationResult:
        try:
            return await self._call(
                self.notifier.send_down_notification,
                monitor.user_email,
                monitor.url,
                monitor.name
            )
        except NotifierFailure as e:
            return self._failed(monitor, NotificationKind.DOWN, e)

    async def _send_up(self, monitor: MonitorRecord, now: datetime) -> NotificationResult:
        duration_text = await self.downtime(monitor, now)
        try:
            return await self._call(
                self.notifier.send_up_notification,
                monitor.user_email,
                monitor.url,
                monitor.name,
                duration_text
            )
        except NotifierFailure as e:
            return self._failed(monitor, NotificationKind.UP, e)

    @staticmethod
    async def _call(send, *args) -> NotificationResult:
        try:
            result = await send(*args)
        except Exception as e:
            raise NotifierFailure(str(e) or e.__class__.__name__) from e
        if result is None:
            raise NotifierFailure("Notifier returned no result")
        return result

    @staticmethod
    def _failed(monitor: MonitorRecord, kind: NotificationKind, error: Exception) -> NotificationResult:
        logger.error(
            "Notifier raised while sending alert",
            extra={
                "monitor_id": monitor.id,
                "notification_type": kind.value,
                "error": str(error)
            }
        )
        return NotificationResult(success=False, error=str(error))

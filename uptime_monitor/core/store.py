"""Store access used by the engine: monitor snapshots and the notification log."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uptime_monitor.core.exceptions import StoreUnavailable
from uptime_monitor.database.session import async_session
from uptime_monitor.models.monitor import Monitor, MonitorStatus
from uptime_monitor.models.notification_log import NotificationLog, NotificationKind
from uptime_monitor.models.user import User
from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def store_session(
    session_factory: async_sessionmaker
) -> AsyncIterator[AsyncSession]:
    """
    Open a session, translating SQLAlchemy failures into ``StoreUnavailable``.

    Each caller commits its own single statement; nothing spans sessions.
    """
    try:
        async with session_factory() as session:
            yield session
    except SQLAlchemyError as e:
        raise StoreUnavailable(str(e)) from e


@dataclass(frozen=True)
class MonitorRecord:
    """Typed snapshot of a monitor row joined with its owner's address."""
    id: int
    user_id: int
    user_email: str
    url: str
    name: Optional[str] = None
    status: MonitorStatus = MonitorStatus.PENDING
    last_checked: Optional[datetime] = None
    response_time: Optional[int] = None
    notifications_enabled: bool = True
    last_notification_sent: Optional[datetime] = None

    @classmethod
    def from_row(cls, monitor: Monitor, user_email: str) -> "MonitorRecord":
        return cls(
            id=monitor.id,
            user_id=monitor.user_id,
            user_email=user_email,
            url=monitor.url,
            name=monitor.name,
            status=MonitorStatus(monitor.status or MonitorStatus.PENDING.value),
            last_checked=monitor.last_checked,
            response_time=monitor.response_time,
            notifications_enabled=bool(monitor.notifications_enabled),
            last_notification_sent=monitor.last_notification_sent,
        )


class MonitorStore:
    """
    Reads monitors for the scheduler and writes notification bookkeeping.

    Args:
        session_factory: Async session factory (defaults to the application's)
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session

    async def list_monitors(self) -> List[MonitorRecord]:
        """Load every monitor joined with its owner's email, oldest first."""
        async with store_session(self.session_factory) as db:
            result = await db.execute(
                select(Monitor, User.email)
                .join(User, Monitor.user_id == User.id)
                .order_by(Monitor.id)
            )
            return [MonitorRecord.from_row(monitor, email) for monitor, email in result.all()]

    async def get_monitor(self, monitor_id: int) -> Optional[MonitorRecord]:
        """Load one monitor with its owner's email, or None."""
        async with store_session(self.session_factory) as db:
            result = await db.execute(
                select(Monitor, User.email)
                .join(User, Monitor.user_id == User.id)
                .where(Monitor.id == monitor_id)
            )
            row = result.first()
            if row is None:
                return None
            return MonitorRecord.from_row(row[0], row[1])

    async def mark_notification_sent(self, monitor_id: int, sent_at: datetime) -> None:
        """Set the monitor's last-notification-sent timestamp."""
        async with store_session(self.session_factory) as db:
            await db.execute(
                update(Monitor)
                .where(Monitor.id == monitor_id)
                .values(last_notification_sent=sent_at)
            )
            await db.commit()

    async def log_notification(
        self,
        monitor_id: int,
        user_email: str,
        kind: NotificationKind,
        success: bool,
        error_message: Optional[str] = None,
        sent_at: Optional[datetime] = None
    ) -> NotificationLog:
        """Append one notification-log entry."""
        entry = NotificationLog(
            monitor_id=monitor_id,
            user_email=user_email,
            notification_type=kind.value,
            success=success,
            error_message=error_message,
            sent_at=sent_at or datetime.utcnow()
        )
        async with store_session(self.session_factory) as db:
            db.add(entry)
            await db.commit()

        logger.info(
            "Notification logged",
            extra={
                "monitor_id": monitor_id,
                "notification_type": kind.value,
                "success": success
            }
        )
        return entry

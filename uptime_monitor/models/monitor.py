"""Monitor model - a user-registered URL under periodic observation."""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from uptime_monitor.database.base import Base


class MonitorStatus(str, enum.Enum):
    """Classified status of a monitor."""
    PENDING = "pending"
    UP = "up"
    DOWN = "down"


class Monitor(Base):
    """
    Monitor model representing a URL to be checked every sweep.

    Attributes:
        id: Primary key
        user_id: Owning user
        url: URL as entered (scheme optional)
        name: Optional display name
        status: Cached status of the most recent check (pending until first check)
        last_checked: Timestamp of the most recent check
        response_time: Latency of the most recent check in milliseconds
        notifications_enabled: Whether transitions send alerts to the owner
        last_notification_sent: Timestamp of the last successful down alert
        created_at: Creation timestamp
    """

    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    url = Column(String(2048), nullable=False)
    name = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default=MonitorStatus.PENDING.value)
    last_checked = Column(DateTime, nullable=True)
    response_time = Column(Integer, nullable=True)  # in milliseconds

    notifications_enabled = Column(Boolean, nullable=False, default=True)
    last_notification_sent = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    owner = relationship("User", back_populates="monitors")
    status_checks = relationship(
        "StatusCheck",
        back_populates="monitor",
        cascade="all, delete-orphan"
    )
    notification_logs = relationship(
        "NotificationLog",
        back_populates="monitor",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Monitor(id={self.id}, url='{self.url}', status='{self.status}')>"

"""NotificationLog model - tracks attempted alerts for audit and reporting."""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from uptime_monitor.database.base import Base


class NotificationKind(str, enum.Enum):
    """Kind of transition an alert reports."""
    DOWN = "down"
    UP = "up"


class NotificationLog(Base):
    """
    NotificationLog model representing one notification attempt.

    Attributes:
        id: Primary key
        monitor_id: Foreign key to monitor
        user_email: Recipient address
        notification_type: "down" or "up"
        success: Whether the notifier accepted the message
        error_message: Error details if the attempt failed
        sent_at: Timestamp of the attempt
    """

    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True, index=True)
    monitor_id = Column(
        Integer,
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_email = Column(String(255), nullable=False)
    notification_type = Column(String(10), nullable=False)
    success = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)

    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    monitor = relationship("Monitor", back_populates="notification_logs")

    def __repr__(self) -> str:
        return (
            f"<NotificationLog(id={self.id}, monitor_id={self.monitor_id}, "
            f"type={self.notification_type}, success={self.success})>"
        )

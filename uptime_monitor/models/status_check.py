"""StatusCheck model - append-only history of monitor checks."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from uptime_monitor.database.base import Base


class StatusCheck(Base):
    """
    One classified check of a monitor.

    Rows are never updated; they are removed only when their monitor is deleted.

    Attributes:
        id: Primary key
        monitor_id: Foreign key to monitor
        status: "up" or "down"
        response_time: Latency in milliseconds (null when no response was received)
        checked_at: Timestamp of the check
        error_message: Error detail for down checks
    """

    __tablename__ = "monitor_status_history"

    id = Column(Integer, primary_key=True, index=True)
    monitor_id = Column(
        Integer,
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status = Column(String(20), nullable=False, index=True)
    response_time = Column(Integer, nullable=True)
    checked_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    monitor = relationship("Monitor", back_populates="status_checks")

    def __repr__(self) -> str:
        return (
            f"<StatusCheck(id={self.id}, monitor_id={self.monitor_id}, "
            f"status={self.status}, checked_at={self.checked_at})>"
        )

"""
Notification Service Tool
Daily reminder triggers and instant notifications

Delivery itself belongs to the device platform; this service keeps the
registered triggers and hands instant messages to registered handlers.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import uuid


logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Types of notifications"""
    MEDICINE_REMINDER = "medicine_reminder"
    STOCK_ALERT = "stock_alert"


@dataclass
class NotificationResult:
    """Result of sending a notification"""
    success: bool
    recipient_id: int
    notification_type: NotificationType = NotificationType.MEDICINE_REMINDER
    message_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class DailyTrigger:
    """A recurring notification at a fixed clock time"""
    handle: str
    hour: int
    minute: int
    title: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)
    notification_type: NotificationType = NotificationType.MEDICINE_REMINDER
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def clock_time(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class NotificationService:
    """
    Reminder scheduler and instant notification sender
    """

    def __init__(self):
        self._triggers: Dict[str, DailyTrigger] = {}
        self._handlers: List[Callable[[int, str, str], Any]] = []

    def register_handler(self, handler: Callable[[int, str, str], Any]):
        """Register a callable(recipient_id, title, body) for instant delivery"""
        self._handlers.append(handler)

    def schedule_daily(
        self,
        hour: int,
        minute: int,
        title: str,
        body: str,
        payload: Optional[Dict[str, Any]] = None,
        notification_type: NotificationType = NotificationType.MEDICINE_REMINDER
    ) -> str:
        """
        Arrange a trigger that fires every day at hour:minute

        Returns:
            Opaque handle usable with cancel()
        """
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"Invalid trigger time {hour}:{minute}")

        handle = str(uuid.uuid4())[:8]
        self._triggers[handle] = DailyTrigger(
            handle=handle,
            hour=hour,
            minute=minute,
            title=title,
            body=body,
            payload=dict(payload or {}),
            notification_type=notification_type
        )
        logger.info(f"Scheduled daily notification {handle} at {hour:02d}:{minute:02d}")
        return handle

    def cancel(self, handle: str) -> bool:
        if self._triggers.pop(handle, None):
            logger.info(f"Cancelled notification {handle}")
            return True
        return False

    def cancel_all(self):
        self._triggers.clear()

    def get_scheduled(self) -> List[DailyTrigger]:
        return list(self._triggers.values())

    async def send_instant(
        self,
        recipient_id: int,
        title: str,
        body: str,
        notification_type: NotificationType = NotificationType.MEDICINE_REMINDER
    ) -> NotificationResult:
        """Deliver a notification immediately to every registered handler"""
        logger.info(f"[NOTIFY] {notification_type.value} to user {recipient_id}: {title}")
        try:
            for handler in self._handlers:
                handler(recipient_id, title, body)
        except Exception as e:
            logger.error(f"Notification delivery error: {e}")
            return NotificationResult(
                success=False,
                recipient_id=recipient_id,
                notification_type=notification_type,
                error=str(e)
            )

        return NotificationResult(
            success=True,
            recipient_id=recipient_id,
            notification_type=notification_type,
            message_id=f"notify_{uuid.uuid4().hex[:8]}",
            delivered_at=datetime.now(timezone.utc)
        )


# Singleton instance
notification_service = NotificationService()

"""
Tools Package
Utility tools for the MediTrack system
"""

from .notification_service import (
    NotificationService,
    NotificationType,
    NotificationResult,
    DailyTrigger,
    notification_service
)

__all__ = [
    # Notification Service
    "NotificationService",
    "NotificationType",
    "NotificationResult",
    "DailyTrigger",
    "notification_service"
]

"""
Test Tools Package
Tests for the tools module (notification triggers and instant delivery)
"""

__all__ = [
    "test_notification_service",
]

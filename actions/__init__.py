"""
Actions Module
Engines for alerts, adaptive reminders, and adherence trends
"""

from .alert_engine import (
    Alert,
    AlertSeverity,
    AlertType,
    CaregiverAlerts,
    DoctorAlerts,
    AlertEngine,
    alert_engine,
    sort_alerts
)

from .reminder_engine import (
    AdaptiveTimeInfo,
    TimePattern,
    AdaptiveTimingSummary,
    ReminderEngine,
    reminder_engine,
    parse_clock_time,
    shift_clock_time
)

from .trend_engine import (
    TrendDirection,
    TrendResult,
    TrendEngine,
    trend_engine,
    classify_trend
)


__all__ = [
    # Alert Engine
    "Alert",
    "AlertSeverity",
    "AlertType",
    "CaregiverAlerts",
    "DoctorAlerts",
    "AlertEngine",
    "alert_engine",
    "sort_alerts",

    # Reminder Engine
    "AdaptiveTimeInfo",
    "TimePattern",
    "AdaptiveTimingSummary",
    "ReminderEngine",
    "reminder_engine",
    "parse_clock_time",
    "shift_clock_time",

    # Trend Engine
    "TrendDirection",
    "TrendResult",
    "TrendEngine",
    "trend_engine",
    "classify_trend"
]

"""Reminder scheduling for Cyclecast.

Modules:
    scheduler — Decide which users are due a cycle reminder and dispatch them
"""

from src.cycle_engine.reminders.scheduler import (
    ReminderContext,
    ReminderJob,
    ReminderResult,
    ReminderScheduler,
)

__all__ = [
    "ReminderScheduler",
    "ReminderJob",
    "ReminderContext",
    "ReminderResult",
]

"""Reminder domain - contractor and recurring event reminders, scheduled jobs"""

from .router import router

__all__ = ["router"]

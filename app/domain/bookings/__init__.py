"""Booking domain - workflow, admin events and calendar files"""

from .router import router

__all__ = ["router"]

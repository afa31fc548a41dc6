"""Approval domain - quote approval by clients and the owner"""

from .router import router

__all__ = ["router"]

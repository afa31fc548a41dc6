"""Inquiry domain - public forms and quote preparation"""

from .router import router

__all__ = ["router"]

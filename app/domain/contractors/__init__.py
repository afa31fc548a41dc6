"""Contractor domain - crew selection, job offers and the contractor directory"""

from .router import router

__all__ = ["router"]

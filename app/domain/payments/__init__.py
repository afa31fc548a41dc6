"""Payment domain - deposits, balances and contractor payouts"""

from .router import router

__all__ = ["router"]

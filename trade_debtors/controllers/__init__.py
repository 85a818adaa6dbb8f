# Controllers Package
# MVC Controller Layer

from .trade_debtor_controller import router as trade_debtor_router
from .health_controller import router as health_router

__all__ = [
    "trade_debtor_router",
    "health_router"
]

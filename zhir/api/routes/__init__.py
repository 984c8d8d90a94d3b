"""
Route modules for the Zhir API.

Each module defines a FastAPI APIRouter for a specific domain.
All routers are collected in ``all_routers`` for easy inclusion.
"""

from zhir.api.routes.system import router as system_router
from zhir.api.routes.chat import router as chat_router
from zhir.api.routes.blog import router as blog_router
from zhir.api.routes.users import router as users_router

all_routers = [
    system_router,
    chat_router,
    blog_router,
    users_router,
]

__all__ = ["all_routers"]

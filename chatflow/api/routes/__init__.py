"""
API 路由模块

提供各功能模块的路由定义。
"""

from .flows import router as flows_router
from .sessions import flows_router as flow_sessions_router
from .sessions import router as sessions_router

__all__ = [
    "flows_router",
    "flow_sessions_router",
    "sessions_router",
]

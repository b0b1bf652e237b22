"""
API 模块

提供 chatflow 的 HTTP 接口。
"""

from .app import app, create_app

__all__ = [
    "app",
    "create_app",
]

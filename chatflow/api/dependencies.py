"""
路由依赖

存储实例挂在 app.state 上，每个应用实例各自独立。
"""

from fastapi import Request

from chatflow.api.store import FlowRepository, SessionRegistry


def get_repository(request: Request) -> FlowRepository:
    """获取流程仓库"""
    return request.app.state.flows


def get_sessions(request: Request) -> SessionRegistry:
    """获取会话注册表"""
    return request.app.state.sessions

"""
通用 API 数据模型

提供错误、健康检查和服务器信息等基础数据模型。
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """错误响应"""
    error: str = Field(..., description="错误类型")
    message: str = Field(..., description="错误信息")
    details: Optional[Dict[str, Any]] = None
    code: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str = "healthy"
    version: str
    flows_count: int = 0
    sessions_count: int = 0
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ServerInfo(BaseModel):
    """服务器信息"""
    name: str = "chatflow"
    version: str
    host: str
    port: int
    step_kinds: list = Field(default_factory=list)
    flows_count: int = 0
    sessions_count: int = 0

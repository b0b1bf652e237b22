"""
FastAPI 应用模块

提供 chatflow 服务的 API 入口：流程编辑、导入导出和预览会话。
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatflow import __version__
from chatflow.api.dependencies import get_repository, get_sessions
from chatflow.api.routes import flow_sessions_router, flows_router, sessions_router
from chatflow.api.schemas import ErrorResponse, HealthResponse, ServerInfo
from chatflow.api.store import (
    FlowNotFoundError,
    FlowRepository,
    SessionNotFoundError,
    SessionRegistry,
)
from chatflow.config import AppConfig, get_config
from chatflow.flows import (
    DuplicateNameError,
    DuplicateStepIdError,
    FlowError,
    InvalidRunStateError,
    StepKind,
    StepNotFoundError,
    UnknownVariableError,
)


logger = logging.getLogger(__name__)

# 异常类型 -> HTTP 状态码，按顺序匹配，未列出的 FlowError 返回 400
_STATUS_CODES = (
    ((FlowNotFoundError, SessionNotFoundError, StepNotFoundError, UnknownVariableError),
     status.HTTP_404_NOT_FOUND),
    ((DuplicateNameError, DuplicateStepIdError, InvalidRunStateError),
     status.HTTP_409_CONFLICT),
)


def status_code_for(exc: FlowError) -> int:
    """获取异常对应的 HTTP 状态码"""
    for error_types, status_code in _STATUS_CODES:
        if isinstance(exc, error_types):
            return status_code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info(f"chatflow 服务启动 (版本 {__version__})")
    yield
    logger.info(
        f"chatflow 服务关闭，丢弃 {len(app.state.flows)} 个流程和 {len(app.state.sessions)} 个会话"
    )


def create_app(config: AppConfig = None) -> FastAPI:
    """
    创建 FastAPI 应用实例

    每个实例拥有独立的内存存储。
    """
    config = config or get_config()

    app = FastAPI(
        title="chatflow",
        description="对话流程编排与预览服务 - 编辑流程图并在服务端模拟运行",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.flows = FlowRepository()
    app.state.sessions = SessionRegistry(
        max_steps=config.interpreter.max_steps,
        max_sessions=config.server.max_sessions,
    )

    # 配置 CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_allow_origins,
        allow_credentials=config.server.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    app.include_router(flows_router, prefix="/api/v1/flows", tags=["Flows"])
    app.include_router(flow_sessions_router, prefix="/api/v1/flows", tags=["Sessions"])
    app.include_router(sessions_router, prefix="/api/v1/sessions", tags=["Sessions"])

    # ==================== 根路径 ====================

    @app.get("/", response_model=ServerInfo)
    async def root(request: Request):
        """获取服务器信息"""
        return ServerInfo(
            version=__version__,
            host=config.server.host,
            port=config.server.port,
            step_kinds=[kind.value for kind in StepKind],
            flows_count=len(get_repository(request)),
            sessions_count=len(get_sessions(request)),
        )

    # ==================== 健康检查 ====================

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """健康检查"""
        return HealthResponse(
            version=__version__,
            flows_count=len(get_repository(request)),
            sessions_count=len(get_sessions(request)),
        )

    # ==================== 错误处理 ====================

    @app.exception_handler(FlowError)
    async def flow_error_handler(request: Request, exc: FlowError):
        """流程异常处理器"""
        status_code = status_code_for(exc)
        logger.info(f"请求被拒绝 ({status_code}): {exc.message}")
        body = ErrorResponse(
            error=type(exc).__name__,
            message=exc.message,
            details=exc.details,
            code=exc.code,
        )
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """全局异常处理器"""
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "服务器内部错误",
                "details": {"type": type(exc).__name__},
            },
        )

    return app


app = create_app()

"""
预览会话 API 路由

在服务端运行流程，由调用方扮演用户逐步提交回答。
"""

import math
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status

from chatflow.api.schemas import (
    AnswerRequest,
    ChoiceRequest,
    ErrorResponse,
    SessionResponse,
    TranscriptDeltaResponse,
)
from chatflow.api.dependencies import get_repository, get_sessions
from chatflow.api.store import FlowRepository, PreviewSession, SessionRegistry
from chatflow.flows import TranscriptDelta, format_value, resolve_choice


flows_router = APIRouter()
router = APIRouter()


def _json_safe(values: Dict[str, Any]) -> Dict[str, Any]:
    """无穷大和 NaN 无法写入 JSON，转为文本"""
    return {
        name: format_value(value) if isinstance(value, float) and not math.isfinite(value) else value
        for name, value in values.items()
    }


def _delta(session: PreviewSession, delta: TranscriptDelta) -> TranscriptDeltaResponse:
    return TranscriptDeltaResponse(session_id=session.id, **delta.to_dict())


def _session(session: PreviewSession) -> SessionResponse:
    run = session.interpreter.run
    return SessionResponse(
        id=session.id,
        flow_id=session.flow.id,
        created_at=session.created_at,
        status=session.interpreter.current_state().to_dict(),
        transcript=run.transcript.to_list() if run else [],
        variables=_json_safe(run.variables.values()) if run else {},
    )


@flows_router.post(
    "/{flow_id}/sessions",
    response_model=TranscriptDeltaResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse, "description": "流程不存在"}},
    summary="开始预览",
    description="创建预览会话并从入口步骤开始运行",
)
async def create_session(
    flow_id: str,
    repo: FlowRepository = Depends(get_repository),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """开始预览，返回运行到第一个暂停点为止的对话记录"""
    session = sessions.create(repo.get(flow_id))
    return _delta(session, session.restart())


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"model": ErrorResponse, "description": "会话不存在"}},
    summary="获取会话",
)
async def get_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    """获取完整对话记录、当前状态和快照变量"""
    return _session(sessions.get(session_id))


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "会话不存在"}},
    summary="关闭会话",
)
async def delete_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    """关闭会话"""
    sessions.delete(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{session_id}/restart",
    response_model=TranscriptDeltaResponse,
    responses={404: {"model": ErrorResponse, "description": "会话不存在"}},
    summary="重新开始",
)
async def restart_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    """丢弃当前运行，按流程最新的定义重新开始"""
    session = sessions.get(session_id)
    return _delta(session, session.restart())


@router.post(
    "/{session_id}/answer",
    response_model=TranscriptDeltaResponse,
    responses={
        404: {"model": ErrorResponse, "description": "会话不存在"},
        409: {"model": ErrorResponse, "description": "当前不在等待文本回答"},
    },
    summary="提交文本回答",
)
async def submit_answer(
    session_id: str,
    request: AnswerRequest,
    sessions: SessionRegistry = Depends(get_sessions),
):
    """提交文本回答"""
    session = sessions.get(session_id)
    return _delta(session, session.interpreter.submit_text_answer(request.text))


@router.post(
    "/{session_id}/choice",
    response_model=TranscriptDeltaResponse,
    responses={
        400: {"model": ErrorResponse, "description": "选项不存在"},
        404: {"model": ErrorResponse, "description": "会话不存在"},
        409: {"model": ErrorResponse, "description": "当前不在等待选择"},
    },
    summary="提交选择",
)
async def submit_choice(
    session_id: str,
    request: ChoiceRequest,
    sessions: SessionRegistry = Depends(get_sessions),
):
    """提交选择，choice_id 也可以是选项文本"""
    session = sessions.get(session_id)
    options = session.interpreter.current_state().options
    choice_id = resolve_choice(options, request.choice_id) if options else request.choice_id
    return _delta(session, session.interpreter.submit_choice(choice_id))

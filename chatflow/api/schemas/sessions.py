"""
预览会话 API 数据模型
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from chatflow.flows import FlowErrorCode, RunOutcome, RunState, TranscriptRole


class TranscriptEntryModel(BaseModel):
    """对话记录条目"""
    id: str
    role: TranscriptRole
    text: str
    step_id: Optional[str] = None
    error_code: Optional[FlowErrorCode] = None


class ChoiceOptionModel(BaseModel):
    """可选项"""
    id: str
    label: str


class RunStatusModel(BaseModel):
    """运行状态"""
    state: RunState
    outcome: Optional[RunOutcome] = None
    options: List[ChoiceOptionModel] = Field(default_factory=list)
    current_step_id: Optional[str] = None
    error_code: Optional[FlowErrorCode] = None


class TranscriptDeltaResponse(BaseModel):
    """一次操作新增的对话记录"""
    session_id: str
    entries: List[TranscriptEntryModel]
    status: RunStatusModel


class SessionResponse(BaseModel):
    """会话详情"""
    id: str
    flow_id: str
    created_at: datetime
    status: RunStatusModel
    transcript: List[TranscriptEntryModel] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)


class AnswerRequest(BaseModel):
    """提交文本回答"""
    text: str


class ChoiceRequest(BaseModel):
    """提交选择（选项 ID 或选项文本）"""
    choice_id: str = Field(..., min_length=1)

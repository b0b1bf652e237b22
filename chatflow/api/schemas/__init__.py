"""
API Schemas 模块

提供 API 请求和响应的数据模型定义。
"""

from .common import (
    ErrorResponse,
    HealthResponse,
    ServerInfo,
)

from .flows import (
    ExportFormat,
    PositionModel,
    FlowCreateRequest,
    FlowUpdateRequest,
    FlowImportRequest,
    FlowResponse,
    FlowDetailResponse,
    FlowListResponse,
    StepCreateRequest,
    StepMoveRequest,
    ConnectRequest,
    ConnectionResponse,
    DisconnectResponse,
    VariableCreateRequest,
    VariableResponse,
    ValidationIssueModel,
    ValidationResponse,
)

from .sessions import (
    TranscriptEntryModel,
    ChoiceOptionModel,
    RunStatusModel,
    TranscriptDeltaResponse,
    SessionResponse,
    AnswerRequest,
    ChoiceRequest,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    "ServerInfo",
    # Flows
    "ExportFormat",
    "PositionModel",
    "FlowCreateRequest",
    "FlowUpdateRequest",
    "FlowImportRequest",
    "FlowResponse",
    "FlowDetailResponse",
    "FlowListResponse",
    "StepCreateRequest",
    "StepMoveRequest",
    "ConnectRequest",
    "ConnectionResponse",
    "DisconnectResponse",
    "VariableCreateRequest",
    "VariableResponse",
    "ValidationIssueModel",
    "ValidationResponse",
    # Sessions
    "TranscriptEntryModel",
    "ChoiceOptionModel",
    "RunStatusModel",
    "TranscriptDeltaResponse",
    "SessionResponse",
    "AnswerRequest",
    "ChoiceRequest",
]

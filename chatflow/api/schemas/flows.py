"""
流程相关 API 数据模型

提供流程创建、更新、导入、编辑操作和校验结果的数据模型。
步骤和变量沿用导出文档的字段格式。
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from chatflow.flows import IssueSeverity, StepKind, VariableType


class ExportFormat(str, Enum):
    """导出格式"""
    JSON = "json"
    YAML = "yaml"


class PositionModel(BaseModel):
    """画布坐标"""
    x: float = 0
    y: float = 0


class FlowCreateRequest(BaseModel):
    """流程创建请求"""
    name: str = Field("Untitled Flow", min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    steps: List[Dict[str, Any]] = Field(default_factory=list, description="步骤定义（导出格式）")
    variables: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="变量定义")


class FlowUpdateRequest(BaseModel):
    """流程更新请求（未提供的部分保持不变）"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    steps: Optional[List[Dict[str, Any]]] = None
    variables: Optional[Dict[str, Dict[str, Any]]] = None


class FlowImportRequest(BaseModel):
    """流程导入请求，document 和 content 二选一"""
    document: Optional[Dict[str, Any]] = Field(None, description="已解析的流程文档")
    content: Optional[str] = Field(None, description="JSON 或 YAML 文本")
    format: ExportFormat = ExportFormat.JSON
    description: Optional[str] = Field(None, max_length=500)


class FlowResponse(BaseModel):
    """流程摘要"""
    id: str
    name: str
    description: Optional[str] = None
    steps_count: int
    variables_count: int
    created_at: datetime
    updated_at: datetime


class FlowDetailResponse(FlowResponse):
    """流程详情"""
    steps: List[Dict[str, Any]]
    connections: List[Dict[str, Any]]
    variables: Dict[str, Dict[str, Any]]


class FlowListResponse(BaseModel):
    """流程列表响应"""
    flows: List[FlowResponse]
    total: int


class StepCreateRequest(BaseModel):
    """添加步骤"""
    kind: StepKind
    id: Optional[str] = Field(None, description="不提供时自动生成")
    content: str = ""
    position: Optional[PositionModel] = None
    properties: Dict[str, Any] = Field(default_factory=dict, description="类型特定字段")


class StepMoveRequest(BaseModel):
    """移动步骤"""
    x: float
    y: float


class ConnectRequest(BaseModel):
    """连接步骤"""
    from_step_id: str
    to_step_id: str
    from_output_id: Optional[str] = Field(None, description="选项或分支 ID，单一出口时不提供")


class ConnectionResponse(BaseModel):
    """连线"""
    id: str
    from_step_id: str
    from_output_id: Optional[str] = None
    to_step_id: str


class DisconnectResponse(BaseModel):
    """断开结果"""
    removed: bool


class VariableCreateRequest(BaseModel):
    """创建变量"""
    name: str = Field(..., min_length=1)
    type: VariableType = VariableType.TEXT


class VariableResponse(BaseModel):
    """变量"""
    name: str
    type: VariableType
    value: Any = None


class ValidationIssueModel(BaseModel):
    """校验问题"""
    severity: IssueSeverity
    code: str
    message: str
    step_id: Optional[str] = None
    output_id: Optional[str] = None


class ValidationResponse(BaseModel):
    """校验结果"""
    valid: bool
    errors: int
    warnings: int
    issues: List[ValidationIssueModel]

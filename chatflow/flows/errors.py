"""
流程错误定义

提供运行期错误代码和编辑期异常类型。

错误分为两类:
- 运行期错误 (FlowErrorCode): 由解释器写入对话记录并结束运行，不向外抛出
- 编辑期异常 (FlowError 子类): 由变量存储、流程图编辑和导入操作同步抛给调用方
"""

from enum import Enum
from typing import Any, Dict, Optional


class FlowErrorCode(str, Enum):
    """
    运行期错误代码

    除 MISSING_IMAGE 外均会终止当前运行。
    """

    MISSING_SUCCESSOR = "MissingSuccessor"
    NO_SATISFIED_BRANCH = "NoSatisfiedBranch"
    EMPTY_CHOICE_SET = "EmptyChoiceSet"
    UNDEFINED_ENTRY_POINT = "UndefinedEntryPoint"
    DANGLING_CHOICE = "DanglingChoice"
    STEP_LIMIT_EXCEEDED = "StepLimitExceeded"
    MISSING_IMAGE = "MissingImage"

    @property
    def is_fatal(self) -> bool:
        """是否终止运行"""
        return self is not FlowErrorCode.MISSING_IMAGE


class FlowError(Exception):
    """流程异常基类"""

    code = "FLOW_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# ========== 变量存储 ==========

class VariableStoreError(FlowError):
    """变量存储异常"""
    code = "VARIABLE_ERROR"


class DuplicateNameError(VariableStoreError):
    """变量名重复"""
    code = "DuplicateName"

    def __init__(self, name: str):
        super().__init__(f"变量已存在: {name}", {"name": name})
        self.name = name


class InvalidNameError(VariableStoreError):
    """变量名不合法"""
    code = "InvalidName"

    def __init__(self, name: str):
        super().__init__(f"无效的变量名: {name!r}", {"name": name})
        self.name = name


class UnknownVariableError(VariableStoreError):
    """变量不存在"""
    code = "UnknownVariable"

    def __init__(self, name: str):
        super().__init__(f"变量不存在: {name}", {"name": name})
        self.name = name


# ========== 流程图编辑 ==========

class GraphError(FlowError):
    """流程图编辑异常"""
    code = "GRAPH_ERROR"


class DuplicateStepIdError(GraphError):
    """步骤 ID 重复"""
    code = "DuplicateStepId"

    def __init__(self, step_id: str):
        super().__init__(f"步骤 ID 重复: {step_id}", {"step_id": step_id})
        self.step_id = step_id


class StepNotFoundError(GraphError):
    """步骤不存在"""
    code = "StepNotFound"

    def __init__(self, step_id: str):
        super().__init__(f"步骤不存在: {step_id}", {"step_id": step_id})
        self.step_id = step_id


class InvalidConnectionError(GraphError):
    """非法连接"""
    code = "InvalidConnection"


class InvalidStepFieldError(GraphError):
    """步骤字段不适用于该步骤类型"""
    code = "InvalidStepField"


# ========== 运行状态 ==========

class RunStateError(FlowError):
    """运行状态异常"""
    code = "RUN_STATE_ERROR"


class InvalidRunStateError(RunStateError):
    """当前状态不接受该输入"""
    code = "InvalidRunState"

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"当前状态 {state} 不支持操作: {operation}",
            {"operation": operation, "state": state},
        )


class UnknownChoiceError(RunStateError):
    """选项不存在"""
    code = "UnknownChoice"

    def __init__(self, choice_id: str):
        super().__init__(f"选项不存在: {choice_id}", {"choice_id": choice_id})
        self.choice_id = choice_id


# ========== 导入 ==========

class FlowParseError(FlowError):
    """流程文档解析异常"""
    code = "FlowParseError"


__all__ = [
    "FlowErrorCode",
    "FlowError",
    "VariableStoreError",
    "DuplicateNameError",
    "InvalidNameError",
    "UnknownVariableError",
    "GraphError",
    "DuplicateStepIdError",
    "StepNotFoundError",
    "InvalidConnectionError",
    "InvalidStepFieldError",
    "RunStateError",
    "InvalidRunStateError",
    "UnknownChoiceError",
    "FlowParseError",
]

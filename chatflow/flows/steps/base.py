"""
流程步骤基类模块

定义步骤类型、分支结构、步骤执行结果以及所有步骤的抽象基类。
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Type

from ..errors import FlowErrorCode, InvalidConnectionError, InvalidStepFieldError
from ..expression import ComparisonOperator

if TYPE_CHECKING:
    from ..context import RunContext


def new_id(prefix: str = "step") -> str:
    """生成 ID"""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


class StepKind(str, Enum):
    """步骤类型"""
    MESSAGE = "message"
    OPEN_QUESTION = "openQuestion"
    CHOICE_QUESTION = "choiceQuestion"
    CONDITION = "condition"
    SET_VARIABLE = "setVariable"
    MATH_OP = "mathOp"
    IMAGE = "image"
    END = "end"


class StepStatus(str, Enum):
    """步骤执行后的控制流向"""
    CONTINUE = "continue"
    AWAITING_TEXT_INPUT = "awaiting_text_input"
    AWAITING_CHOICE = "awaiting_choice"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Position:
    """画布坐标"""
    x: float = 0
    y: float = 0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Position":
        data = data or {}
        return cls(x=data.get("x", 0), y=data.get("y", 0))


@dataclass
class Choice:
    """选择题选项"""
    id: str
    label: str = ""
    next_step_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "next_step_id": self.next_step_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Choice":
        return cls(
            id=data.get("id") or new_id("choice"),
            label=data.get("label") or "",
            next_step_id=data.get("next_step_id"),
        )


@dataclass
class ConditionBranch:
    """条件分支"""
    id: str
    variable_name: str
    operator: ComparisonOperator = ComparisonOperator.EQ
    value: Any = ""
    next_step_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "variable_name": self.variable_name,
            "operator": self.operator.value,
            "value": self.value,
            "next_step_id": self.next_step_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionBranch":
        return cls(
            id=data.get("id") or new_id("cond"),
            variable_name=data.get("variable_name", ""),
            operator=ComparisonOperator(data.get("operator", "==")),
            value=data.get("value", ""),
            next_step_id=data.get("next_step_id"),
        )


@dataclass
class StepResult:
    """步骤执行结果"""
    step_id: str
    kind: StepKind
    status: StepStatus
    next_step: Optional[str] = None
    error_code: Optional[FlowErrorCode] = None
    error: Optional[str] = None
    output: Dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "next_step": self.next_step,
            "error_code": self.error_code.value if self.error_code else None,
            "error": self.error,
            "output": self.output,
        }


# 单一出口 (output_id=None) 或命名出口 (选项/分支 ID)
Output = Tuple[Optional[str], Optional[str]]


class FlowStep(ABC):
    """
    流程步骤抽象基类

    每种步骤类型对应一个子类，子类实现 execute 决定控制流向。
    步骤自身保存后续步骤 ID，是连接关系的唯一来源。

    Attributes:
        id: 步骤 ID
        kind: 步骤类型
        content: 显示文本
        position: 画布坐标
        default_next: 单一出口的后续步骤 ID
    """

    # 是否具有单一出口
    has_default_next = True
    # 可通过 update 修改的字段
    editable_fields: Tuple[str, ...] = ("content", "position")

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position: Position = None,
        default_next: str = None,
    ):
        self.id = step_id or new_id()
        self.kind = self.get_step_kind()
        self.content = content or ""
        self.position = position or Position()
        self.default_next = default_next if self.has_default_next else None

    @classmethod
    @abstractmethod
    def get_step_kind(cls) -> StepKind:
        """获取步骤类型"""
        ...

    @abstractmethod
    def execute(self, run: "RunContext") -> StepResult:
        """
        执行步骤

        Args:
            run: 运行上下文

        Returns:
            StepResult: 控制流向
        """
        ...

    # ========== 连接 ==========

    def outputs(self) -> List[Output]:
        """获取所有出口 (output_id, 目标步骤 ID)"""
        if self.has_default_next:
            return [(None, self.default_next)]
        return []

    def successor_ids(self) -> List[str]:
        """获取所有已连接的后续步骤 ID"""
        return [target for _, target in self.outputs() if target is not None]

    def set_successor(self, output_id: Optional[str], target: Optional[str]) -> None:
        """
        设置出口目标

        Raises:
            InvalidConnectionError: 步骤没有该出口
        """
        if not self.has_default_next:
            raise InvalidConnectionError(
                f"步骤 {self.id} ({self.kind.value}) 不能有后续步骤",
                {"step_id": self.id},
            )
        if output_id is not None:
            raise InvalidConnectionError(
                f"步骤 {self.id} 只有一个出口，不接受 output_id",
                {"step_id": self.id, "output_id": output_id},
            )
        self.default_next = target

    def clear_references(self, target: str) -> int:
        """清除指向指定步骤的连接，返回清除数量"""
        cleared = 0
        for output_id, current in self.outputs():
            if current == target:
                self.set_successor(output_id, None)
                cleared += 1
        return cleared

    # ========== 编辑 ==========

    def update(self, **fields: Any) -> None:
        """
        修改步骤字段

        Raises:
            InvalidStepFieldError: 字段不适用于该步骤类型
        """
        unknown = [name for name in fields if name not in self.editable_fields]
        if unknown:
            raise InvalidStepFieldError(
                f"步骤类型 {self.kind.value} 不支持字段: {', '.join(unknown)}",
                {"step_id": self.id, "fields": unknown},
            )
        for name, value in fields.items():
            try:
                self._set_field(name, value)
            except (TypeError, ValueError) as e:
                raise InvalidStepFieldError(
                    f"字段 {name} 的值不合法: {e}",
                    {"step_id": self.id, "field": name},
                ) from e

    def _set_field(self, name: str, value: Any) -> None:
        if name == "position":
            value = value if isinstance(value, Position) else Position.from_dict(value)
        elif name == "content":
            value = value or ""
        setattr(self, name, value)

    # ========== 执行辅助 ==========

    def _result(self, status: StepStatus, next_step: str = None, **output) -> StepResult:
        return StepResult(
            step_id=self.id,
            kind=self.kind,
            status=status,
            next_step=next_step,
            output=output,
        )

    def _advance(self, **output) -> StepResult:
        """沿单一出口继续"""
        return self._result(StepStatus.CONTINUE, self.default_next, **output)

    def _fail(self, code: FlowErrorCode, message: str) -> StepResult:
        return StepResult(
            step_id=self.id,
            kind=self.kind,
            status=StepStatus.FAILED,
            error_code=code,
            error=message,
        )

    # ========== 序列化 ==========

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        data = {
            "id": self.id,
            "kind": self.kind.value,
            "content": self.content,
            "position": self.position.to_dict(),
        }
        if self.has_default_next:
            data["default_next"] = self.default_next
        data.update(self._fields_to_dict())
        return data

    def _fields_to_dict(self) -> Dict[str, Any]:
        """类型特定字段"""
        return {}

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowStep":
        kwargs = {
            "step_id": data.get("id"),
            "content": data.get("content", ""),
            "position": Position.from_dict(data.get("position")),
        }
        if cls.has_default_next:
            kwargs["default_next"] = data.get("default_next")
        kwargs.update(cls._fields_from_dict(data))
        return cls(**kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, kind={self.kind.value})"


# ========== 步骤工厂 ==========

class StepFactory:
    """步骤工厂"""

    _step_classes: Dict[StepKind, Type[FlowStep]] = {}

    @classmethod
    def register(cls, step_kind: StepKind) -> Callable[[Type[FlowStep]], Type[FlowStep]]:
        """注册步骤类（类装饰器）"""
        def decorator(step_class: Type[FlowStep]) -> Type[FlowStep]:
            cls._step_classes[step_kind] = step_class
            return step_class
        return decorator

    @classmethod
    def ensure_complete(cls) -> None:
        """确认每种步骤类型都有实现"""
        missing = [kind.value for kind in StepKind if kind not in cls._step_classes]
        if missing:
            raise RuntimeError(f"未注册的步骤类型: {', '.join(missing)}")

    @classmethod
    def get_class(cls, step_kind: StepKind) -> Type[FlowStep]:
        """获取步骤类"""
        return cls._step_classes[StepKind(step_kind)]

    @classmethod
    def create(cls, step_data: Dict[str, Any]) -> FlowStep:
        """从字典创建步骤"""
        step_class = cls.get_class(step_data.get("kind", StepKind.MESSAGE.value))
        return step_class.from_dict(step_data)

    @classmethod
    def create_kind(cls, step_kind: StepKind, **kwargs: Any) -> FlowStep:
        """按类型创建空步骤"""
        return cls.get_class(step_kind)(**kwargs)


__all__ = [
    "new_id",
    "StepKind",
    "StepStatus",
    "Position",
    "Choice",
    "ConditionBranch",
    "StepResult",
    "FlowStep",
    "StepFactory",
]

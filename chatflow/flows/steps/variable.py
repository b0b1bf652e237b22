"""
变量步骤实现

设置变量和算术运算，无需用户交互。
"""

from typing import TYPE_CHECKING, Any, Dict, Union

from ..expression import MathOperator, apply_math_operator
from ..variables import coerce_number, format_value
from .base import FlowStep, StepFactory, StepKind, StepResult

if TYPE_CHECKING:
    from ..context import RunContext


@StepFactory.register(StepKind.SET_VARIABLE)
class SetVariableStep(FlowStep):
    """
    设置变量

    assigned_value 插值后按变量类型写入快照并回写共享存储。
    变量不存在时跳过赋值，运行照常继续。

    Attributes:
        bound_variable: 目标变量名
        assigned_value: 赋值文本（支持 {{name}} 插值）
    """

    editable_fields = FlowStep.editable_fields + ("bound_variable", "assigned_value")

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position=None,
        default_next: str = None,
        bound_variable: str = None,
        assigned_value: str = "",
    ):
        super().__init__(
            step_id=step_id,
            content=content,
            position=position,
            default_next=default_next,
        )
        self.bound_variable = bound_variable or None
        self.assigned_value = assigned_value if assigned_value is not None else ""

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.SET_VARIABLE

    def execute(self, run: "RunContext") -> StepResult:
        if not (self.bound_variable and run.variables.has(self.bound_variable)):
            return self._advance(skipped=True)

        value = run.interpolate(format_value(self.assigned_value))
        variable = run.variables.set_value(self.bound_variable, value)
        run.merge_back()
        return self._advance(variable=variable.name, value=variable.value)

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "bound_variable": self.bound_variable,
            "assigned_value": self.assigned_value,
        }

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "bound_variable": data.get("bound_variable"),
            "assigned_value": data.get("assigned_value", ""),
        }


@StepFactory.register(StepKind.MATH_OP)
class MathOpStep(FlowStep):
    """
    算术运算

    bound_variable = bound_variable <math_operator> operand。
    当前值未设置或不是数字时按 0 计算；operand 插值后解析为数字，失败为 0。

    Attributes:
        bound_variable: 目标变量名
        math_operator: + - * /
        operand: 操作数（支持插值）
    """

    editable_fields = FlowStep.editable_fields + ("bound_variable", "math_operator", "operand")

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position=None,
        default_next: str = None,
        bound_variable: str = None,
        math_operator: Union[MathOperator, str] = MathOperator.ADD,
        operand: Any = "0",
    ):
        super().__init__(
            step_id=step_id,
            content=content,
            position=position,
            default_next=default_next,
        )
        self.bound_variable = bound_variable or None
        self.math_operator = MathOperator(math_operator)
        self.operand = operand if operand is not None else "0"

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.MATH_OP

    def execute(self, run: "RunContext") -> StepResult:
        if not (self.bound_variable and run.variables.has(self.bound_variable)):
            return self._advance(skipped=True)

        operand = coerce_number(run.interpolate(format_value(self.operand)))
        current = run.variables.get_value(self.bound_variable)
        result = apply_math_operator(current, self.math_operator, operand)
        variable = run.variables.set_value(self.bound_variable, result)
        run.merge_back()
        return self._advance(variable=variable.name, value=variable.value)

    def _set_field(self, name: str, value: Any) -> None:
        if name == "math_operator":
            value = MathOperator(value)
        super()._set_field(name, value)

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "bound_variable": self.bound_variable,
            "math_operator": self.math_operator.value,
            "operand": self.operand,
        }

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "bound_variable": data.get("bound_variable"),
            "math_operator": data.get("math_operator", MathOperator.ADD.value),
            "operand": data.get("operand", "0"),
        }


__all__ = [
    "SetVariableStep",
    "MathOpStep",
]

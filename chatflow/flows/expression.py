"""
表达式求值模块

提供文本插值和条件判断两个纯函数，不持有状态，没有副作用。

插值语法:
    "你好 {{name}}"  ->  "你好 Ada"

条件判断:
    evaluate_condition("age", ">=", 18, snapshot)
"""

import math
import operator as _op
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .variables import (
    IDENTIFIER_PATTERN,
    Variable,
    VariableStore,
    VariableType,
    coerce_number,
    format_value,
    parse_number,
)


PLACEHOLDER_RE = re.compile(r"\{\{(" + IDENTIFIER_PATTERN + r")\}\}")

Snapshot = Union[VariableStore, Mapping[str, Variable]]


class ComparisonOperator(str, Enum):
    """比较运算符"""
    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="


class MathOperator(str, Enum):
    """算术运算符"""
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"


_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ComparisonOperator.EQ.value: _op.eq,
    ComparisonOperator.NE.value: _op.ne,
    ComparisonOperator.GT.value: _op.gt,
    ComparisonOperator.LT.value: _op.lt,
    ComparisonOperator.GE.value: _op.ge,
    ComparisonOperator.LE.value: _op.le,
}


def _lookup(snapshot: Optional[Snapshot], name: str) -> Optional[Variable]:
    if snapshot is None:
        return None
    return snapshot.get(name)


def find_placeholders(text: str) -> List[str]:
    """按出现顺序返回文本中引用的变量名"""
    return PLACEHOLDER_RE.findall(text or "")


def interpolate(text: str, snapshot: Optional[Snapshot]) -> str:
    """
    文本插值

    将 {{name}} 替换为变量的文本值。变量不存在或未设置时保留占位符原文。
    单次从左到右扫描，替换结果不会再次展开。

    Args:
        text: 原始文本
        snapshot: 变量快照

    Returns:
        插值后的文本
    """
    if not text:
        return text or ""

    def _replace(match: "re.Match") -> str:
        variable = _lookup(snapshot, match.group(1))
        if variable is None or variable.value is None:
            return match.group(0)
        return format_value(variable.value)

    return PLACEHOLDER_RE.sub(_replace, text)


def evaluate_condition(
    variable_name: str,
    operator: str,
    comparison_value: Any,
    snapshot: Optional[Snapshot],
) -> bool:
    """
    条件判断

    两侧都按变量声明的类型比较。以下情况返回 False 而不抛出异常:
    变量不存在或未设置、运算符未知、数字变量遇到无法解析的比较值。

    Args:
        variable_name: 变量名
        operator: 比较运算符
        comparison_value: 比较值（文本或数字）
        snapshot: 变量快照

    Returns:
        bool: 条件结果
    """
    variable = _lookup(snapshot, variable_name)
    if variable is None or variable.value is None:
        return False

    op_key = operator.value if isinstance(operator, ComparisonOperator) else operator
    compare = _COMPARATORS.get(op_key)
    if compare is None:
        return False

    if variable.type is VariableType.NUMBER:
        left = parse_number(variable.value)
        right = parse_number(comparison_value)
        if left is None or right is None:
            return False
    else:
        left = format_value(variable.value)
        right = format_value(comparison_value)

    return bool(compare(left, right))


def apply_math_operator(current: Any, operator: Union[MathOperator, str], operand: Any) -> float:
    """
    执行算术运算

    当前值和操作数都按数字解析，解析失败视为 0。
    除以 0 得到 Infinity / -Infinity，0 / 0 得到 NaN。
    """
    left = coerce_number(current)
    right = coerce_number(operand)
    op = MathOperator(operator)

    if op is MathOperator.ADD:
        return left + right
    if op is MathOperator.SUBTRACT:
        return left - right
    if op is MathOperator.MULTIPLY:
        return left * right
    if right == 0:
        if left == 0:
            return math.nan
        return math.inf if left > 0 else -math.inf
    return left / right


__all__ = [
    "PLACEHOLDER_RE",
    "Snapshot",
    "ComparisonOperator",
    "MathOperator",
    "find_placeholders",
    "interpolate",
    "evaluate_condition",
    "apply_math_operator",
]

"""
表达式求值测试
"""

import math

import pytest

from chatflow.flows import (
    ComparisonOperator,
    Variable,
    VariableStore,
    VariableType,
    evaluate_condition,
    find_placeholders,
    interpolate,
)
from chatflow.flows.expression import apply_math_operator


def _store(**values):
    variables = []
    for name, (var_type, value) in values.items():
        variables.append(Variable(name, var_type, value))
    return VariableStore(variables)


# ==================== 插值 ====================

def test_interpolate_replaces_set_variables():
    """已设置的变量被替换"""
    snapshot = _store(name=(VariableType.TEXT, "Ada"), age=(VariableType.NUMBER, 36.0))
    assert interpolate("Hi {{name}}, you are {{age}}", snapshot) == "Hi Ada, you are 36"


def test_interpolate_preserves_unresolved_placeholders():
    """不存在或未设置的变量保留原文"""
    snapshot = _store(name=(VariableType.TEXT, None))
    text = "Hi {{name}} and {{ghost}}"
    assert interpolate(text, snapshot) == text


def test_interpolate_is_single_pass():
    """替换结果中的占位符不会再次展开"""
    snapshot = _store(a=(VariableType.TEXT, "{{b}}"), b=(VariableType.TEXT, "boom"))
    assert interpolate("{{a}}", snapshot) == "{{b}}"


@pytest.mark.parametrize("text", [
    "{{ name }}",
    "{name}",
    "{{1abc}}",
    "{{name",
    "{{na-me}}",
])
def test_interpolate_ignores_malformed_placeholders(text):
    """格式不正确的占位符原样保留"""
    snapshot = _store(name=(VariableType.TEXT, "Ada"))
    assert interpolate(text, snapshot) == text


def test_interpolate_number_formatting():
    """数字使用与区域无关的十进制格式"""
    snapshot = _store(
        whole=(VariableType.NUMBER, 5.0),
        frac=(VariableType.NUMBER, 2.5),
        neg=(VariableType.NUMBER, -3.0),
    )
    assert interpolate("{{whole}} {{frac}} {{neg}}", snapshot) == "5 2.5 -3"


def test_interpolate_idempotent_when_fully_resolved():
    """全部占位符都能解析时再次插值不变"""
    snapshot = _store(name=(VariableType.TEXT, "Ada"))
    once = interpolate("Hello {{name}}!", snapshot)
    assert interpolate(once, snapshot) == once


def test_find_placeholders_in_order():
    assert find_placeholders("{{b}} {{a}} {{b}}") == ["b", "a", "b"]


# ==================== 条件 ====================

@pytest.mark.parametrize("operator", [op.value for op in ComparisonOperator])
def test_condition_false_for_missing_or_unset(operator):
    """变量不存在或未设置时条件永远不成立"""
    snapshot = _store(x=(VariableType.NUMBER, None))
    assert evaluate_condition("x", operator, 1, snapshot) is False
    assert evaluate_condition("missing", operator, 1, snapshot) is False


@pytest.mark.parametrize("operator, value, expected", [
    ("==", "10", True),
    ("!=", 10, False),
    (">", "9.5", True),
    ("<", 11, True),
    (">=", "10", True),
    ("<=", 9, False),
])
def test_condition_numeric(operator, value, expected):
    snapshot = _store(x=(VariableType.NUMBER, 10.0))
    assert evaluate_condition("x", operator, value, snapshot) is expected


def test_condition_numeric_with_non_numeric_literal_is_false():
    snapshot = _store(x=(VariableType.NUMBER, 10.0))
    assert evaluate_condition("x", "!=", "abc", snapshot) is False


def test_condition_text_comparison():
    """文本按原样比较"""
    snapshot = _store(color=(VariableType.TEXT, "blue"))
    assert evaluate_condition("color", "==", "blue", snapshot) is True
    assert evaluate_condition("color", "==", "Blue", snapshot) is False
    assert evaluate_condition("color", "<", "green", snapshot) is True


def test_condition_text_against_number_literal():
    """文本变量与数字比较值按文本比较"""
    snapshot = _store(code=(VariableType.TEXT, "7"))
    assert evaluate_condition("code", "==", 7, snapshot) is True


def test_condition_unknown_operator_is_false():
    snapshot = _store(x=(VariableType.NUMBER, 1.0))
    assert evaluate_condition("x", "=~", 1, snapshot) is False


# ==================== 算术 ====================

def test_math_operators():
    assert apply_math_operator(2, "+", 3) == 5
    assert apply_math_operator(2, "-", 3) == -1
    assert apply_math_operator(2, "*", 3) == 6
    assert apply_math_operator(3, "/", 2) == 1.5


def test_math_non_numeric_treated_as_zero():
    assert apply_math_operator(None, "+", "5") == 5
    assert apply_math_operator("abc", "+", "xyz") == 0


def test_math_division_by_zero():
    assert apply_math_operator(1, "/", 0) == math.inf
    assert apply_math_operator(-1, "/", 0) == -math.inf
    assert math.isnan(apply_math_operator(0, "/", 0))

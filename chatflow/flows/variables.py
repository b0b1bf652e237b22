"""
变量存储模块

管理流程中的命名变量，提供类型转换、快照和回写功能。

每次运行从共享存储中取一份快照，运行过程中只修改快照，
在约定的检查点通过 merge_back 把值写回共享存储（后写者覆盖）。
"""

import math
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from .errors import DuplicateNameError, InvalidNameError, UnknownVariableError


IDENTIFIER_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"
_IDENTIFIER_RE = re.compile(rf"^{IDENTIFIER_PATTERN}$")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_INFINITY_TOKENS = {"Infinity": math.inf, "+Infinity": math.inf, "-Infinity": -math.inf}
_NAN_TOKEN = "NaN"

VariableValue = Union[str, float, None]


class VariableType(str, Enum):
    """变量类型"""
    TEXT = "text"
    NUMBER = "number"

    @classmethod
    def parse(cls, value: Any) -> "VariableType":
        """解析类型名（兼容旧格式的 string）"""
        if isinstance(value, VariableType):
            return value
        if value == "string":
            return cls.TEXT
        return cls(value)


def is_valid_name(name: Any) -> bool:
    """检查变量名是否为合法标识符"""
    return isinstance(name, str) and bool(_IDENTIFIER_RE.match(name))


def parse_number(value: Any) -> Optional[float]:
    """
    解析数字

    Args:
        value: 文本或数字

    Returns:
        解析结果，无法解析时返回 None
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if _NUMBER_RE.match(text):
            return float(text)
        if text in _INFINITY_TOKENS:
            return _INFINITY_TOKENS[text]
    return None


def coerce_number(value: Any) -> float:
    """解析数字，失败时返回 0"""
    number = parse_number(value)
    return 0.0 if number is None else number


def format_value(value: VariableValue) -> str:
    """
    将变量值转换为文本

    数字使用与区域设置无关的十进制格式，整数值不带小数部分。
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _is_nan(value: Any) -> bool:
    if isinstance(value, float):
        return math.isnan(value)
    return isinstance(value, str) and value.strip() == _NAN_TOKEN


def coerce_value(value: Any, var_type: VariableType) -> VariableValue:
    """按变量类型转换值（None 表示未设置）"""
    if value is None:
        return None
    if var_type is VariableType.NUMBER:
        if _is_nan(value):
            return math.nan
        return coerce_number(value)
    return format_value(value)


@dataclass
class Variable:
    """
    变量

    Attributes:
        name: 变量名
        type: 变量类型，创建后不可修改
        value: 当前值，None 表示未设置
    """
    name: str
    type: VariableType
    value: VariableValue = None

    @property
    def is_set(self) -> bool:
        return self.value is not None

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, float):
            # 非有限数字导出为文本，导入时再解析回来
            if not math.isfinite(value):
                value = format_value(value)
            elif value.is_integer() and abs(value) < 1e21:
                value = int(value)
        return {
            "name": self.name,
            "type": self.type.value,
            "value": value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variable":
        var_type = VariableType.parse(data.get("type", VariableType.TEXT.value))
        return cls(
            name=data["name"],
            type=var_type,
            value=coerce_value(data.get("value"), var_type),
        )


class VariableStore:
    """
    变量存储

    以变量名为键保存变量，既用作共享变量池，也用作单次运行的快照。
    """

    def __init__(self, variables: List[Variable] = None):
        self._variables: Dict[str, Variable] = {}
        for variable in variables or []:
            self._variables[variable.name] = variable

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def __iter__(self) -> Iterator[Variable]:
        return iter(list(self._variables.values()))

    def __len__(self) -> int:
        return len(self._variables)

    @property
    def names(self) -> List[str]:
        return list(self._variables)

    def has(self, name: str) -> bool:
        """检查变量是否存在"""
        return name in self._variables

    def get(self, name: str) -> Optional[Variable]:
        """获取变量"""
        return self._variables.get(name)

    def get_value(self, name: str, default: Any = None) -> Any:
        """获取变量值"""
        variable = self._variables.get(name)
        if variable is None or variable.value is None:
            return default
        return variable.value

    def create_variable(self, name: str, var_type: Union[VariableType, str]) -> Variable:
        """
        创建变量

        Args:
            name: 变量名
            var_type: 变量类型

        Returns:
            Variable: 新变量，数字初始为 0，文本初始为空字符串

        Raises:
            InvalidNameError: 变量名不合法
            DuplicateNameError: 变量已存在
        """
        if not is_valid_name(name):
            raise InvalidNameError(name)
        if name in self._variables:
            raise DuplicateNameError(name)

        var_type = VariableType.parse(var_type)
        initial = 0.0 if var_type is VariableType.NUMBER else ""
        variable = Variable(name=name, type=var_type, value=initial)
        self._variables[name] = variable
        return variable

    def remove_variable(self, name: str) -> bool:
        """
        删除变量

        步骤中对该变量名的引用保持不变。
        """
        return self._variables.pop(name, None) is not None

    def set_value(self, name: str, value: Any) -> Variable:
        """
        设置变量值（按变量类型转换）

        Raises:
            UnknownVariableError: 变量不存在
        """
        variable = self._variables.get(name)
        if variable is None:
            raise UnknownVariableError(name)
        variable.value = coerce_value(value, variable.type)
        return variable

    def snapshot(self) -> "VariableStore":
        """获取值隔离的副本"""
        return VariableStore([replace(v) for v in self._variables.values()])

    def merge_back(self, snapshot: "VariableStore") -> None:
        """
        回写快照

        只覆盖两边都存在的变量，快照中新增的变量被忽略。
        """
        for name, variable in self._variables.items():
            source = snapshot.get(name)
            if source is not None:
                variable.value = coerce_value(source.value, variable.type)

    def values(self) -> Dict[str, VariableValue]:
        """获取所有变量值"""
        return {name: v.value for name, v in self._variables.items()}

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """转换为字典（用于导出）"""
        return {name: v.to_dict() for name, v in self._variables.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "VariableStore":
        store = cls()
        for name, item in (data or {}).items():
            item = {"name": name, **item}
            if not is_valid_name(item["name"]):
                raise InvalidNameError(item["name"])
            store._variables[item["name"]] = Variable.from_dict(item)
        return store

    def __repr__(self) -> str:
        return f"VariableStore(variables={self.names})"


__all__ = [
    "IDENTIFIER_PATTERN",
    "VariableType",
    "VariableValue",
    "Variable",
    "VariableStore",
    "is_valid_name",
    "parse_number",
    "coerce_number",
    "coerce_value",
    "format_value",
]

"""
流程解析模块

提供流程文档的导入导出和静态校验。
"""

from .json import FORMAT_VERSION, ParsedFlow, FlowParser, load_flow
from .validator import PAUSING_KINDS, IssueSeverity, ValidationIssue, FlowValidator

__all__ = [
    "FORMAT_VERSION",
    "ParsedFlow",
    "FlowParser",
    "load_flow",
    "PAUSING_KINDS",
    "IssueSeverity",
    "ValidationIssue",
    "FlowValidator",
]

"""
流程校验器

在运行前静态检查流程图，发现会导致运行期错误或明显不符合作者意图的结构。
校验只报告问题，不修改流程图。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from ..expression import find_placeholders
from ..graph import FlowGraph
from ..steps import (
    ChoiceQuestionStep,
    ConditionStep,
    FlowStep,
    MathOpStep,
    SetVariableStep,
    StepKind,
)
from ..variables import VariableStore, VariableType, parse_number, format_value


# 会暂停等待输入的步骤类型，包含这些步骤的环不会空转
PAUSING_KINDS = (StepKind.OPEN_QUESTION, StepKind.CHOICE_QUESTION)


class IssueSeverity(str, Enum):
    """问题级别"""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ValidationIssue:
    """校验发现的问题"""
    severity: IssueSeverity
    code: str
    message: str
    step_id: Optional[str] = None
    output_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "step_id": self.step_id,
            "output_id": self.output_id,
        }


class FlowValidator:
    """
    流程校验器

    Example:
        issues = FlowValidator().validate(graph, variables)
        if not FlowValidator.is_valid(issues):
            ...
    """

    def validate(self, graph: FlowGraph, variables: VariableStore = None) -> List[ValidationIssue]:
        """
        校验流程图

        Args:
            graph: 流程图
            variables: 变量存储，不传时跳过变量引用检查

        Returns:
            问题列表，按发现顺序排列
        """
        issues: List[ValidationIssue] = []

        if len(graph) == 0:
            issues.append(self._error("EMPTY_FLOW", "流程中没有任何步骤"))
            return issues

        for step in graph.steps:
            issues.extend(self._check_outputs(graph, step))
            if variables is not None:
                issues.extend(self._check_variables(step, variables))

        issues.extend(self._check_reachability(graph))
        issues.extend(self._check_loops(graph))
        return issues

    @staticmethod
    def is_valid(issues: Iterable[ValidationIssue]) -> bool:
        """没有错误级别的问题"""
        return not any(issue.is_error for issue in issues)

    # ========== 连接检查 ==========

    def _check_outputs(self, graph: FlowGraph, step: FlowStep) -> List[ValidationIssue]:
        issues = []

        if isinstance(step, ChoiceQuestionStep) and not step.options:
            issues.append(self._error(
                "EMPTY_CHOICE_SET", f"选择题 {step.id} 没有任何选项", step.id,
            ))

        if isinstance(step, ConditionStep) and not step.branches:
            issues.append(self._error(
                "NO_BRANCHES", f"条件步骤 {step.id} 没有任何分支", step.id,
            ))

        for output_id, target in step.outputs():
            if target is None:
                if output_id is not None:
                    issues.append(self._warning(
                        "UNCONNECTED_OUTPUT",
                        f"步骤 {step.id} 的出口 {output_id} 没有连接后续步骤",
                        step.id,
                        output_id,
                    ))
            elif target not in graph:
                issues.append(self._error(
                    "DANGLING_SUCCESSOR",
                    f"步骤 {step.id} 指向不存在的步骤: {target}",
                    step.id,
                    output_id,
                ))

        return issues

    # ========== 变量检查 ==========

    def _check_variables(self, step: FlowStep, variables: VariableStore) -> List[ValidationIssue]:
        issues = []

        bound = getattr(step, "bound_variable", None)
        if bound and not variables.has(bound):
            issues.append(self._warning(
                "UNDEFINED_VARIABLE",
                f"步骤 {step.id} 绑定的变量不存在: {bound}",
                step.id,
            ))

        for name in self._referenced_placeholders(step):
            if not variables.has(name):
                issues.append(self._warning(
                    "UNDEFINED_VARIABLE",
                    f"步骤 {step.id} 引用的变量不存在: {{{{{name}}}}}",
                    step.id,
                ))

        if isinstance(step, ConditionStep):
            for branch in step.branches:
                variable = variables.get(branch.variable_name)
                if variable is None:
                    issues.append(self._warning(
                        "UNDEFINED_VARIABLE",
                        f"分支 {branch.id} 判断的变量不存在: {branch.variable_name}",
                        step.id,
                        branch.id,
                    ))
                elif variable.type == VariableType.NUMBER and parse_number(branch.value) is None:
                    issues.append(self._warning(
                        "NON_NUMERIC_COMPARISON",
                        f"分支 {branch.id} 用非数字值比较数字变量，条件永远不成立",
                        step.id,
                        branch.id,
                    ))

        return issues

    def _referenced_placeholders(self, step: FlowStep) -> List[str]:
        texts = [step.content]
        if isinstance(step, SetVariableStep):
            texts.append(format_value(step.assigned_value))
        if isinstance(step, MathOpStep):
            texts.append(format_value(step.operand))

        names: List[str] = []
        for text in texts:
            for name in find_placeholders(text or ""):
                if name not in names:
                    names.append(name)
        return names

    # ========== 可达性与循环 ==========

    def _check_reachability(self, graph: FlowGraph) -> List[ValidationIssue]:
        entry = graph.entry_step()
        reachable = graph.reachable_from(entry.id)
        return [
            self._warning("UNREACHABLE_STEP", f"步骤 {step.id} 从入口步骤不可到达", step.id)
            for step in graph.steps
            if step.id not in reachable
        ]

    def _check_loops(self, graph: FlowGraph) -> List[ValidationIssue]:
        """
        查找不经过提问步骤的环

        环内没有条件步骤时每次都会原样重复，必然超过步数上限，记为错误；
        有条件步骤时可能在某次迭代后退出，记为警告。
        """
        candidates = {s.id for s in graph.steps if s.kind not in PAUSING_KINDS}
        edges = {
            step_id: [t for t in graph.successors(step_id) if t in candidates]
            for step_id in candidates
        }
        reach = {step_id: self._reach(step_id, edges) for step_id in candidates}

        issues = []
        seen: Set[str] = set()
        for step in graph.steps:
            if step.id not in candidates or step.id in seen:
                continue
            if step.id not in reach[step.id]:
                continue

            members = [
                s.id for s in graph.steps
                if s.id in candidates and s.id in reach[step.id] and step.id in reach[s.id]
            ]
            seen.update(members)

            cycle = "[" + ", ".join(members) + "]"
            if any(graph.get_step(m).kind == StepKind.CONDITION for m in members):
                issues.append(self._warning(
                    "POSSIBLE_INFINITE_LOOP",
                    f"环 {cycle} 中没有提问步骤，只能依靠条件分支退出",
                    step.id,
                ))
            else:
                issues.append(self._error(
                    "INFINITE_LOOP",
                    f"环 {cycle} 中没有提问步骤和条件步骤，运行时会无限循环",
                    step.id,
                ))
        return issues

    @staticmethod
    def _reach(start: str, edges: Dict[str, List[str]]) -> Set[str]:
        """从 start 的后继出发可到达的节点（start 在环上时包含自身）"""
        seen: Set[str] = set()
        stack = list(edges[start])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(edges[current])
        return seen

    # ========== 辅助 ==========

    @staticmethod
    def _error(code: str, message: str, step_id: str = None, output_id: str = None) -> ValidationIssue:
        return ValidationIssue(IssueSeverity.ERROR, code, message, step_id, output_id)

    @staticmethod
    def _warning(code: str, message: str, step_id: str = None, output_id: str = None) -> ValidationIssue:
        return ValidationIssue(IssueSeverity.WARNING, code, message, step_id, output_id)


__all__ = [
    "PAUSING_KINDS",
    "IssueSeverity",
    "ValidationIssue",
    "FlowValidator",
]

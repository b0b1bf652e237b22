"""
条件步骤实现

按顺序评估分支，第一个成立的分支决定后续步骤。
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..errors import FlowErrorCode, InvalidConnectionError
from ..expression import ComparisonOperator
from .base import (
    ConditionBranch,
    FlowStep,
    Output,
    StepFactory,
    StepKind,
    StepResult,
    StepStatus,
    new_id,
)

if TYPE_CHECKING:
    from ..context import RunContext


@StepFactory.register(StepKind.CONDITION)
class ConditionStep(FlowStep):
    """
    条件步骤

    分支按列表顺序评估（首个匹配），没有分支成立时运行以错误结束，
    不会落到任何默认出口。

    Attributes:
        branches: 有序条件分支列表
    """

    has_default_next = False
    editable_fields = FlowStep.editable_fields + ("branches",)

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position=None,
        branches: List[ConditionBranch] = None,
    ):
        super().__init__(step_id=step_id, content=content, position=position)
        self.branches: List[ConditionBranch] = list(branches or [])

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.CONDITION

    def find_branch(self, branch_id: str) -> Optional[ConditionBranch]:
        """按 ID 查找分支"""
        for branch in self.branches:
            if branch.id == branch_id:
                return branch
        return None

    def add_branch(
        self,
        variable_name: str,
        operator: str = "==",
        value: Any = "",
        next_step_id: str = None,
        branch_id: str = None,
    ) -> ConditionBranch:
        """添加分支"""
        branch = ConditionBranch(
            id=branch_id or new_id("cond"),
            variable_name=variable_name,
            operator=ComparisonOperator(operator),
            value=value,
            next_step_id=next_step_id,
        )
        self.branches.append(branch)
        return branch

    def remove_branch(self, branch_id: str) -> bool:
        """删除分支"""
        before = len(self.branches)
        self.branches = [b for b in self.branches if b.id != branch_id]
        return len(self.branches) != before

    def execute(self, run: "RunContext") -> StepResult:
        for index, branch in enumerate(self.branches):
            if not run.evaluate(branch.variable_name, branch.operator, branch.value):
                continue
            if not branch.next_step_id:
                return self._fail(
                    FlowErrorCode.MISSING_SUCCESSOR,
                    f"条件分支 {index + 1} 成立但没有连接后续步骤",
                )
            return self._result(
                StepStatus.CONTINUE,
                branch.next_step_id,
                branch_id=branch.id,
                branch_index=index,
            )

        return self._fail(
            FlowErrorCode.NO_SATISFIED_BRANCH,
            f"条件步骤 {self.id} 没有满足的分支",
        )

    def outputs(self) -> List[Output]:
        return [(b.id, b.next_step_id) for b in self.branches]

    def set_successor(self, output_id: Optional[str], target: Optional[str]) -> None:
        branch = self.find_branch(output_id) if output_id else None
        if branch is None:
            raise InvalidConnectionError(
                f"条件步骤 {self.id} 没有分支: {output_id}",
                {"step_id": self.id, "output_id": output_id},
            )
        branch.next_step_id = target

    def _set_field(self, name: str, value: Any) -> None:
        if name == "branches":
            self.branches = [
                b if isinstance(b, ConditionBranch) else ConditionBranch.from_dict(b)
                for b in value or []
            ]
            return
        super()._set_field(name, value)

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"branches": [b.to_dict() for b in self.branches]}

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"branches": [ConditionBranch.from_dict(b) for b in data.get("branches") or []]}


__all__ = [
    "ConditionStep",
]

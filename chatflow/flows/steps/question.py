"""
提问步骤实现

开放式问题和选择题，两者都会暂停运行等待外部输入。
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..errors import FlowErrorCode, InvalidConnectionError, UnknownChoiceError
from .base import (
    Choice,
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


@StepFactory.register(StepKind.OPEN_QUESTION)
class OpenQuestionStep(FlowStep):
    """
    开放式问题

    输出问题后等待文本回答，回答写入 bound_variable。

    Attributes:
        bound_variable: 保存回答的变量名
    """

    editable_fields = FlowStep.editable_fields + ("bound_variable",)

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position=None,
        default_next: str = None,
        bound_variable: str = None,
    ):
        super().__init__(
            step_id=step_id,
            content=content,
            position=position,
            default_next=default_next,
        )
        self.bound_variable = bound_variable or None

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.OPEN_QUESTION

    def execute(self, run: "RunContext") -> StepResult:
        run.say(run.interpolate(self.content), step_id=self.id)
        return self._result(StepStatus.AWAITING_TEXT_INPUT)

    def accept_answer(self, run: "RunContext", text: str) -> StepResult:
        """
        处理文本回答

        变量存在于快照中时按类型保存（数字解析失败为 0）并回写共享存储。
        """
        stored = False
        if self.bound_variable and run.variables.has(self.bound_variable):
            run.variables.set_value(self.bound_variable, text)
            run.merge_back()
            stored = True
        return self._advance(answer=text, stored=stored)

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"bound_variable": self.bound_variable}

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"bound_variable": data.get("bound_variable")}


@StepFactory.register(StepKind.CHOICE_QUESTION)
class ChoiceQuestionStep(FlowStep):
    """
    选择题

    每个选项各自指向后续步骤，没有单一出口。

    Attributes:
        options: 有序选项列表
    """

    has_default_next = False
    editable_fields = FlowStep.editable_fields + ("options",)

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position=None,
        options: List[Choice] = None,
    ):
        super().__init__(step_id=step_id, content=content, position=position)
        self.options: List[Choice] = list(options or [])

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.CHOICE_QUESTION

    def find_option(self, choice_id: str) -> Optional[Choice]:
        """按 ID 查找选项"""
        for option in self.options:
            if option.id == choice_id:
                return option
        return None

    def add_option(self, label: str, next_step_id: str = None, choice_id: str = None) -> Choice:
        """添加选项"""
        option = Choice(id=choice_id or new_id("choice"), label=label, next_step_id=next_step_id)
        self.options.append(option)
        return option

    def remove_option(self, choice_id: str) -> bool:
        """删除选项"""
        before = len(self.options)
        self.options = [o for o in self.options if o.id != choice_id]
        return len(self.options) != before

    def execute(self, run: "RunContext") -> StepResult:
        run.say(run.interpolate(self.content), step_id=self.id)
        if not self.options:
            return self._fail(FlowErrorCode.EMPTY_CHOICE_SET, f"选择题 {self.id} 没有任何选项")
        return self._result(StepStatus.AWAITING_CHOICE)

    def select(self, run: "RunContext", choice_id: str) -> StepResult:
        """
        处理选择

        Raises:
            UnknownChoiceError: 选项不存在（不记录任何内容）
        """
        option = self.find_option(choice_id)
        if option is None:
            raise UnknownChoiceError(choice_id)

        run.record_user(option.label, step_id=self.id)
        if not option.next_step_id:
            return self._fail(
                FlowErrorCode.DANGLING_CHOICE,
                f"选项 “{option.label}” 没有连接后续步骤",
            )
        return self._result(StepStatus.CONTINUE, option.next_step_id, choice_id=option.id)

    def outputs(self) -> List[Output]:
        return [(o.id, o.next_step_id) for o in self.options]

    def set_successor(self, output_id: Optional[str], target: Optional[str]) -> None:
        option = self.find_option(output_id) if output_id else None
        if option is None:
            raise InvalidConnectionError(
                f"选择题 {self.id} 没有选项: {output_id}",
                {"step_id": self.id, "output_id": output_id},
            )
        option.next_step_id = target

    def _set_field(self, name: str, value: Any) -> None:
        if name == "options":
            self.options = [o if isinstance(o, Choice) else Choice.from_dict(o) for o in value or []]
            return
        super()._set_field(name, value)

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"options": [o.to_dict() for o in self.options]}

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"options": [Choice.from_dict(o) for o in data.get("options") or []]}


__all__ = [
    "OpenQuestionStep",
    "ChoiceQuestionStep",
]

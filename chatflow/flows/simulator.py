"""
脚本化模拟用户

用预先准备的输入列表驱动解释器，直到运行结束或输入用完。
文本问题直接使用输入文本；选择题的输入可以是选项 ID，也可以是选项文本。
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .context import RunState, RunStatus
from .engine import FlowInterpreter
from .errors import UnknownChoiceError
from .graph import FlowGraph
from .steps import Choice
from .transcript import TranscriptEntry
from .variables import VariableStore


logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """
    模拟结果

    Attributes:
        transcript: 完整对话记录
        status: 最终运行状态
        variables: 运行结束时快照中的变量值
        inputs_used: 已消耗的输入数量
        remaining_inputs: 未使用的输入
    """
    transcript: List[TranscriptEntry]
    status: RunStatus
    variables: Dict[str, Any] = field(default_factory=dict)
    inputs_used: int = 0
    remaining_inputs: List[str] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.status.is_finished

    @property
    def ok(self) -> bool:
        return self.finished and self.status.error_code is None

    def texts(self) -> List[str]:
        """按 role:text 形式列出对话记录"""
        return [f"{e.role.value}:{e.text}" for e in self.transcript]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcript": [e.to_dict() for e in self.transcript],
            "status": self.status.to_dict(),
            "variables": self.variables,
            "inputs_used": self.inputs_used,
            "remaining_inputs": self.remaining_inputs,
        }


def resolve_choice(options: List[Choice], value: str) -> str:
    """
    将输入解析为选项 ID

    依次按 ID、完整文本、忽略大小写和首尾空白的文本匹配。

    Raises:
        UnknownChoiceError: 没有匹配的选项
    """
    for option in options:
        if option.id == value:
            return option.id
    for option in options:
        if option.label == value:
            return option.id
    wanted = value.strip().casefold()
    for option in options:
        if option.label.strip().casefold() == wanted:
            return option.id
    raise UnknownChoiceError(value)


def simulate(
    graph: FlowGraph,
    variables: VariableStore,
    inputs: Iterable[str] = (),
    max_steps: Optional[int] = None,
    isolate: bool = True,
) -> SimulationResult:
    """
    运行一次模拟

    Args:
        graph: 流程图
        variables: 共享变量存储
        inputs: 按顺序提交的输入
        max_steps: 步数上限，默认读取配置
        isolate: 为 True 时在共享存储的副本上运行，回写不影响调用方

    Returns:
        SimulationResult
    """
    shared = variables.snapshot() if isolate else variables
    pending = list(inputs)
    used = 0

    interpreter = FlowInterpreter(max_steps=max_steps)
    interpreter.start(graph, shared)

    while pending:
        status = interpreter.current_state()
        if status.state == RunState.AWAITING_TEXT_INPUT:
            interpreter.submit_text_answer(pending.pop(0))
        elif status.state == RunState.AWAITING_CHOICE:
            interpreter.submit_choice(resolve_choice(status.options, pending.pop(0)))
        else:
            break
        used += 1

    run = interpreter.run
    status = interpreter.current_state()
    if not status.is_finished:
        logger.debug(f"输入已用完，运行停在 {status.state.value}")

    return SimulationResult(
        transcript=run.transcript.entries,
        status=status,
        variables=run.variables.values(),
        inputs_used=used,
        remaining_inputs=pending,
    )


__all__ = [
    "SimulationResult",
    "resolve_choice",
    "simulate",
]

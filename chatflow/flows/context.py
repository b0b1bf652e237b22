"""
流程运行上下文

管理单次运行的状态、变量快照和对话记录。
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..logger import RunLogger
from .errors import FlowErrorCode
from .expression import evaluate_condition, interpolate
from .steps.base import Choice
from .transcript import Transcript, TranscriptEntry, TranscriptRole
from .variables import VariableStore

if TYPE_CHECKING:
    from .graph import FlowGraph


class RunState(str, Enum):
    """运行状态"""
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_TEXT_INPUT = "awaiting_text_input"
    AWAITING_CHOICE = "awaiting_choice"
    FINISHED = "finished"


class RunOutcome(str, Enum):
    """运行结果"""
    OK = "ok"
    ERROR = "error"


@dataclass
class RunStatus:
    """
    运行状态快照

    Attributes:
        state: 当前状态
        outcome: 结束时的结果
        options: 等待选择时可选的选项
        current_step_id: 当前步骤
        error_code: 以错误结束时的错误代码
    """
    state: RunState
    outcome: Optional[RunOutcome] = None
    options: List[Choice] = field(default_factory=list)
    current_step_id: Optional[str] = None
    error_code: Optional[FlowErrorCode] = None

    @property
    def is_finished(self) -> bool:
        return self.state == RunState.FINISHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "outcome": self.outcome.value if self.outcome else None,
            "options": [{"id": o.id, "label": o.label} for o in self.options],
            "current_step_id": self.current_step_id,
            "error_code": self.error_code.value if self.error_code else None,
        }


@dataclass
class TranscriptDelta:
    """一次外部事件新增的对话记录和之后的运行状态"""
    entries: List[TranscriptEntry]
    status: RunStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "status": self.status.to_dict(),
        }


class RunContext:
    """
    流程运行上下文

    Attributes:
        run_id: 运行 ID
        graph: 流程图（只读）
        shared: 共享变量存储
        variables: 本次运行的变量快照
        state: 运行状态
        outcome: 运行结果
        transcript: 对话记录
        current_step_id: 当前步骤
    """

    def __init__(
        self,
        graph: "FlowGraph",
        shared: VariableStore,
        run_id: str = None,
    ):
        self.run_id = run_id or str(uuid.uuid4())
        self.graph = graph
        self.shared = shared
        self.variables = shared.snapshot()
        self.state = RunState.IDLE
        self.outcome: Optional[RunOutcome] = None
        self.error_code: Optional[FlowErrorCode] = None
        self.transcript = Transcript()
        self.current_step_id: Optional[str] = None
        self.pending_options: List[Choice] = []
        self.steps_executed = 0
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.log = RunLogger(self.run_id)

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.state == RunState.FINISHED

    @property
    def is_awaiting(self) -> bool:
        return self.state in (RunState.AWAITING_TEXT_INPUT, RunState.AWAITING_CHOICE)

    @property
    def duration_ms(self) -> int:
        if self.start_time is None:
            return 0
        end = self.end_time or datetime.utcnow()
        return int((end - self.start_time).total_seconds() * 1000)

    # ========== 变量 ==========

    def interpolate(self, text: str) -> str:
        """使用当前快照插值"""
        return interpolate(text, self.variables)

    def evaluate(self, variable_name: str, operator: str, value: Any) -> bool:
        """使用当前快照判断条件"""
        return evaluate_condition(variable_name, operator, value, self.variables)

    def merge_back(self) -> None:
        """将快照回写到共享存储"""
        self.shared.merge_back(self.variables)

    # ========== 对话记录 ==========

    def say(self, text: str, step_id: str = None) -> TranscriptEntry:
        """追加机器人消息"""
        return self.transcript.append(TranscriptRole.BOT, text, step_id=step_id)

    def show_image(self, source: str, step_id: str = None) -> TranscriptEntry:
        """追加图片"""
        return self.transcript.append(TranscriptRole.IMAGE, source, step_id=step_id)

    def record_user(self, text: str, step_id: str = None) -> TranscriptEntry:
        """追加用户消息"""
        return self.transcript.append(TranscriptRole.USER, text, step_id=step_id)

    def report_error(self, code: FlowErrorCode, message: str, step_id: str = None) -> TranscriptEntry:
        """追加错误条目"""
        self.log.error(message, error={"code": code.value}, step_id=step_id)
        return self.transcript.append(
            TranscriptRole.BOT,
            message,
            step_id=step_id,
            error_code=code,
        )

    # ========== 状态转换 ==========

    def start(self) -> None:
        """开始运行"""
        self.state = RunState.RUNNING
        self.start_time = datetime.utcnow()
        self.log.start()
        self.log.info(f"开始运行，共 {len(self.graph)} 个步骤")

    def resume(self) -> None:
        """收到外部输入后继续运行"""
        self.state = RunState.RUNNING
        self.pending_options = []

    def pause(self, state: RunState, options: List[Choice] = None) -> None:
        """暂停等待外部输入"""
        self.state = state
        self.pending_options = list(options or [])
        self.log.info(f"等待输入: {state.value}", step_id=self.current_step_id)

    def finish(self, outcome: RunOutcome, error_code: FlowErrorCode = None) -> None:
        """结束运行"""
        self.state = RunState.FINISHED
        self.outcome = outcome
        self.error_code = error_code
        self.pending_options = []
        self.end_time = datetime.utcnow()
        self.log.info(
            f"运行结束: {outcome.value}",
            error_code=error_code.value if error_code else None,
            steps_executed=self.steps_executed,
        )

    def status(self) -> RunStatus:
        """获取当前状态快照"""
        return RunStatus(
            state=self.state,
            outcome=self.outcome,
            options=list(self.pending_options),
            current_step_id=self.current_step_id,
            error_code=self.error_code,
        )

    def delta(self, mark: int) -> TranscriptDelta:
        """获取指定位置之后的对话记录和当前状态"""
        return TranscriptDelta(entries=self.transcript.since(mark), status=self.status())

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于序列化）"""
        return {
            "run_id": self.run_id,
            "status": self.status().to_dict(),
            "variables": self.variables.values(),
            "transcript": self.transcript.to_list(),
            "steps_executed": self.steps_executed,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
        }

    def __repr__(self) -> str:
        return (
            f"RunContext(run_id={self.run_id}, "
            f"state={self.state.value}, "
            f"entries={len(self.transcript)})"
        )


__all__ = [
    "RunState",
    "RunOutcome",
    "RunStatus",
    "TranscriptDelta",
    "RunContext",
]

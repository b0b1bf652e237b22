"""
流程解释器模块

同步状态机：从入口步骤开始逐步执行，在提问处暂停等待外部输入。

状态转换:
    idle -> running -> (awaiting_text_input | awaiting_choice) -> running -> ... -> finished

运行期错误（缺少后续步骤、没有满足的分支等）写入对话记录并以 finished(error) 结束，
不会抛出异常。只有在错误的状态下提交输入才会抛出 RunStateError。
"""

import logging
from typing import Optional

from ..config import get_config
from .context import RunContext, RunOutcome, RunState, RunStatus, TranscriptDelta
from .errors import FlowErrorCode, InvalidRunStateError, UnknownChoiceError
from .graph import FlowGraph
from .steps import ChoiceQuestionStep, OpenQuestionStep, StepResult, StepStatus
from .variables import VariableStore


logger = logging.getLogger(__name__)


class FlowInterpreter:
    """
    流程解释器

    每次 start() 都会丢弃之前的运行，重新取变量快照。
    同一时刻只持有一个运行；多个并发预览应各自使用独立的解释器，
    它们对共享变量存储的回写以后写者为准。

    Attributes:
        max_steps: 两次外部输入之间最多执行的步骤数
    """

    def __init__(self, max_steps: int = None):
        self.max_steps = max_steps if max_steps is not None else get_config().interpreter.max_steps
        self._run: Optional[RunContext] = None

    @property
    def run(self) -> Optional[RunContext]:
        """当前运行上下文"""
        return self._run

    # ========== 外部接口 ==========

    def start(self, graph: FlowGraph, variables: VariableStore) -> TranscriptDelta:
        """
        开始（或重新开始）运行

        Args:
            graph: 流程图
            variables: 共享变量存储

        Returns:
            TranscriptDelta: 新增的对话记录和当前状态
        """
        if self._run is not None and not self._run.is_finished:
            logger.debug(f"放弃未结束的运行: {self._run.run_id}")

        run = RunContext(graph=graph, shared=variables)
        self._run = run
        run.start()

        entry = graph.entry_step()
        if entry is None:
            self._fail(run, FlowErrorCode.UNDEFINED_ENTRY_POINT, "流程中没有任何步骤")
        else:
            self._drive(run, entry.id)

        return run.delta(0)

    def submit_text_answer(self, text: str) -> TranscriptDelta:
        """
        提交文本回答

        Raises:
            InvalidRunStateError: 当前不在等待文本输入
        """
        run = self._require_state(RunState.AWAITING_TEXT_INPUT, "submit_text_answer")
        step = run.graph.get_step(run.current_step_id)
        mark = len(run.transcript)

        run.resume()
        run.record_user(text, step_id=run.current_step_id)

        if not isinstance(step, OpenQuestionStep):
            self._fail(run, FlowErrorCode.MISSING_SUCCESSOR, f"当前步骤已不存在: {run.current_step_id}")
            return run.delta(mark)

        next_step = self._apply(run, step.accept_answer(run, text))
        if next_step is not None:
            self._drive(run, next_step)
        return run.delta(mark)

    def submit_choice(self, choice_id: str) -> TranscriptDelta:
        """
        提交选择

        Raises:
            InvalidRunStateError: 当前不在等待选择
            UnknownChoiceError: 选项不存在
        """
        run = self._require_state(RunState.AWAITING_CHOICE, "submit_choice")
        if not any(option.id == choice_id for option in run.pending_options):
            raise UnknownChoiceError(choice_id)

        step = run.graph.get_step(run.current_step_id)
        mark = len(run.transcript)
        run.resume()

        if not isinstance(step, ChoiceQuestionStep) or step.find_option(choice_id) is None:
            self._fail(run, FlowErrorCode.MISSING_SUCCESSOR, f"当前步骤已不存在: {run.current_step_id}")
            return run.delta(mark)

        next_step = self._apply(run, step.select(run, choice_id))
        if next_step is not None:
            self._drive(run, next_step)
        return run.delta(mark)

    def current_state(self) -> RunStatus:
        """获取当前状态"""
        if self._run is None:
            return RunStatus(state=RunState.IDLE)
        return self._run.status()

    # ========== 内部实现 ==========

    def _require_state(self, expected: RunState, operation: str) -> RunContext:
        run = self._run
        state = run.state if run else RunState.IDLE
        if state != expected:
            raise InvalidRunStateError(operation, state.value)
        return run

    def _drive(self, run: RunContext, step_id: str) -> None:
        """从指定步骤执行到暂停或结束"""
        executed = 0
        next_step: Optional[str] = step_id

        while next_step is not None:
            step = run.graph.get_step(next_step)
            if step is None:
                self._fail(run, FlowErrorCode.MISSING_SUCCESSOR, f"下一步骤不存在: {next_step}")
                return

            if executed >= self.max_steps:
                self._fail(
                    run,
                    FlowErrorCode.STEP_LIMIT_EXCEEDED,
                    f"连续执行超过 {self.max_steps} 个步骤，流程可能存在死循环",
                )
                return

            executed += 1
            run.steps_executed += 1
            run.current_step_id = step.id

            run.log.step_start(step.id, step.kind.value)
            result = step.execute(run)
            run.log.step_end(
                result.status.value,
                result=result.output or None,
                error={"code": result.error_code.value} if result.failed else None,
            )

            next_step = self._apply(run, result)

    def _apply(self, run: RunContext, result: StepResult) -> Optional[str]:
        """根据步骤结果转换状态，返回需要继续执行的步骤 ID"""
        if result.status == StepStatus.FAILED:
            self._fail(run, result.error_code, result.error)
            return None

        if result.status == StepStatus.AWAITING_TEXT_INPUT:
            run.pause(RunState.AWAITING_TEXT_INPUT)
            return None

        if result.status == StepStatus.AWAITING_CHOICE:
            step = run.graph.get_step(result.step_id)
            run.pause(RunState.AWAITING_CHOICE, options=step.options)
            return None

        if result.status == StepStatus.COMPLETED or result.next_step is None:
            run.finish(RunOutcome.OK)
            return None

        return result.next_step

    def _fail(self, run: RunContext, code: FlowErrorCode, message: str) -> None:
        run.report_error(code, message, step_id=run.current_step_id)
        run.finish(RunOutcome.ERROR, error_code=code)


__all__ = [
    "FlowInterpreter",
]

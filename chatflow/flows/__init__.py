"""
流程模块

提供流程图数据模型、表达式求值、变量存储和解释器。

主要组件:
- FlowGraph: 流程图（步骤集合和连接关系）
- VariableStore: 变量存储（共享变量池和运行快照）
- FlowInterpreter: 同步状态机解释器
- FlowParser / FlowValidator: 导入导出和静态校验

使用示例:
    ```python
    from chatflow.flows import FlowGraph, FlowInterpreter, StepKind, VariableStore

    variables = VariableStore()
    variables.create_variable("name", "text")

    graph = FlowGraph(name="问候")
    hello = graph.create_step(StepKind.MESSAGE, "Hi {{name}}")
    ask = graph.create_step(StepKind.OPEN_QUESTION, "Name?", bound_variable="name")
    bye = graph.create_step(StepKind.END, "Bye {{name}}")
    graph.connect(hello.id, ask.id)
    graph.connect(ask.id, bye.id)

    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)
    delta = interpreter.submit_text_answer("Ada")
    print([e.text for e in delta.entries])
    ```
"""

from .errors import (
    FlowErrorCode,
    FlowError,
    VariableStoreError,
    DuplicateNameError,
    InvalidNameError,
    UnknownVariableError,
    GraphError,
    DuplicateStepIdError,
    StepNotFoundError,
    InvalidConnectionError,
    InvalidStepFieldError,
    RunStateError,
    InvalidRunStateError,
    UnknownChoiceError,
    FlowParseError,
)
from .variables import Variable, VariableType, VariableStore, format_value, parse_number
from .expression import (
    ComparisonOperator,
    MathOperator,
    interpolate,
    evaluate_condition,
    find_placeholders,
)
from .steps import (
    StepKind,
    StepStatus,
    Position,
    Choice,
    ConditionBranch,
    StepResult,
    FlowStep,
    StepFactory,
    MessageStep,
    ImageStep,
    EndStep,
    OpenQuestionStep,
    ChoiceQuestionStep,
    ConditionStep,
    SetVariableStep,
    MathOpStep,
)
from .graph import Connection, FlowGraph
from .transcript import TranscriptRole, TranscriptEntry, Transcript
from .context import RunState, RunOutcome, RunStatus, TranscriptDelta, RunContext
from .engine import FlowInterpreter
from .simulator import SimulationResult, resolve_choice, simulate
from .parsers import FlowParser, FlowValidator, ParsedFlow, ValidationIssue, IssueSeverity

__all__ = [
    # Errors
    "FlowErrorCode",
    "FlowError",
    "VariableStoreError",
    "DuplicateNameError",
    "InvalidNameError",
    "UnknownVariableError",
    "GraphError",
    "DuplicateStepIdError",
    "StepNotFoundError",
    "InvalidConnectionError",
    "InvalidStepFieldError",
    "RunStateError",
    "InvalidRunStateError",
    "UnknownChoiceError",
    "FlowParseError",
    # Variables
    "Variable",
    "VariableType",
    "VariableStore",
    "format_value",
    "parse_number",
    # Expression
    "ComparisonOperator",
    "MathOperator",
    "interpolate",
    "evaluate_condition",
    "find_placeholders",
    # Steps
    "StepKind",
    "StepStatus",
    "Position",
    "Choice",
    "ConditionBranch",
    "StepResult",
    "FlowStep",
    "StepFactory",
    "MessageStep",
    "ImageStep",
    "EndStep",
    "OpenQuestionStep",
    "ChoiceQuestionStep",
    "ConditionStep",
    "SetVariableStep",
    "MathOpStep",
    # Graph
    "Connection",
    "FlowGraph",
    # Run
    "TranscriptRole",
    "TranscriptEntry",
    "Transcript",
    "RunState",
    "RunOutcome",
    "RunStatus",
    "TranscriptDelta",
    "RunContext",
    "FlowInterpreter",
    # Simulator
    "SimulationResult",
    "resolve_choice",
    "simulate",
    # Parsers
    "FlowParser",
    "FlowValidator",
    "ParsedFlow",
    "ValidationIssue",
    "IssueSeverity",
]

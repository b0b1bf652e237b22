"""
流程解释器测试
"""

import pytest

from chatflow.config import reset_config
from chatflow.flows import (
    ComparisonOperator,
    ConditionBranch,
    FlowErrorCode,
    FlowGraph,
    FlowInterpreter,
    InvalidRunStateError,
    MathOperator,
    RunOutcome,
    RunState,
    StepKind,
    TranscriptRole,
    UnknownChoiceError,
    Variable,
    VariableStore,
    VariableType,
)


def _texts(entries):
    return [f"{e.role.value}:{e.text}" for e in entries]


# ==================== 基本场景 ====================

def test_greeting_scenario(greeting_flow):
    """未设置的变量保留占位符，回答后插值生效"""
    graph, variables = greeting_flow
    interpreter = FlowInterpreter()

    delta = interpreter.start(graph, variables)
    assert _texts(delta.entries) == ["bot:Hi {{name}}", "bot:Name?"]
    assert delta.status.state == RunState.AWAITING_TEXT_INPUT

    delta = interpreter.submit_text_answer("Ada")
    assert _texts(delta.entries) == ["user:Ada", "bot:Bye Ada"]
    assert delta.status.state == RunState.FINISHED
    assert delta.status.outcome == RunOutcome.OK

    # 回答写回共享存储
    assert variables.get_value("name") == "Ada"


def test_transcript_ids_are_sequential(greeting_flow):
    graph, variables = greeting_flow
    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)
    interpreter.submit_text_answer("Ada")
    assert [e.id for e in interpreter.run.transcript] == ["msg_1", "msg_2", "msg_3", "msg_4"]


def test_current_state_before_start():
    assert FlowInterpreter().current_state().state == RunState.IDLE


def test_message_without_successor_finishes_ok():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "Only message")
    delta = FlowInterpreter().start(graph, VariableStore())
    assert _texts(delta.entries) == ["bot:Only message"]
    assert delta.status.outcome == RunOutcome.OK


def test_end_step_with_empty_content_adds_nothing():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "Hi", step_id="hi")
    graph.create_step(StepKind.END, "", step_id="end")
    graph.connect("hi", "end")
    delta = FlowInterpreter().start(graph, VariableStore())
    assert _texts(delta.entries) == ["bot:Hi"]
    assert delta.status.is_finished


# ==================== 条件 ====================

def _condition_flow(x_value, branches):
    variables = VariableStore([Variable("x", VariableType.NUMBER, x_value)])
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "Start", step_id="start")
    cond = graph.create_step(StepKind.CONDITION, step_id="cond")
    graph.create_step(StepKind.END, "A", step_id="A")
    graph.create_step(StepKind.END, "B", step_id="B")
    graph.connect("start", "cond")
    cond.branches = branches
    return graph, variables


def test_condition_first_match_wins():
    """第一个成立的分支生效，而不是最佳匹配"""
    graph, variables = _condition_flow(15.0, [
        ConditionBranch("b1", "x", ComparisonOperator.GT, 10, "A"),
        ConditionBranch("b2", "x", ComparisonOperator.GT, 0, "B"),
    ])
    delta = FlowInterpreter().start(graph, variables)
    assert _texts(delta.entries) == ["bot:Start", "bot:A"]


def test_condition_later_branch():
    graph, variables = _condition_flow(5.0, [
        ConditionBranch("b1", "x", ComparisonOperator.GT, 10, "A"),
        ConditionBranch("b2", "x", ComparisonOperator.GT, 0, "B"),
    ])
    delta = FlowInterpreter().start(graph, variables)
    assert _texts(delta.entries)[-1] == "bot:B"


def test_condition_no_branch_satisfied():
    graph, variables = _condition_flow(-1.0, [
        ConditionBranch("b1", "x", ComparisonOperator.GT, 10, "A"),
    ])
    delta = FlowInterpreter().start(graph, variables)
    assert delta.status.outcome == RunOutcome.ERROR
    assert delta.status.error_code == FlowErrorCode.NO_SATISFIED_BRANCH
    assert delta.entries[-1].error_code == FlowErrorCode.NO_SATISFIED_BRANCH


def test_condition_on_unset_variable_never_fires():
    graph, variables = _condition_flow(None, [
        ConditionBranch("b1", "x", ComparisonOperator.NE, 1, "A"),
    ])
    delta = FlowInterpreter().start(graph, variables)
    assert delta.status.error_code == FlowErrorCode.NO_SATISFIED_BRANCH


def test_condition_matched_branch_without_target():
    graph, variables = _condition_flow(15.0, [
        ConditionBranch("b1", "x", ComparisonOperator.GT, 10, None),
        ConditionBranch("b2", "x", ComparisonOperator.GT, 0, "B"),
    ])
    delta = FlowInterpreter().start(graph, variables)
    assert delta.status.error_code == FlowErrorCode.MISSING_SUCCESSOR


def test_condition_on_removed_variable_degrades_gracefully():
    """变量被删除后引用它的分支不成立"""
    graph, variables = _condition_flow(15.0, [
        ConditionBranch("b1", "x", ComparisonOperator.GT, 10, "A"),
    ])
    variables.remove_variable("x")
    delta = FlowInterpreter().start(graph, variables)
    assert delta.status.error_code == FlowErrorCode.NO_SATISFIED_BRANCH


# ==================== 运行期错误 ====================

def test_missing_successor_after_message():
    """缺少后续步骤时错误条目之前恰好一条机器人消息"""
    graph = FlowGraph()
    step = graph.create_step(StepKind.MESSAGE, "Hello", step_id="hello")
    step.default_next = "ghost"

    delta = FlowInterpreter().start(graph, VariableStore())

    assert delta.status.state == RunState.FINISHED
    assert delta.status.outcome == RunOutcome.ERROR
    assert delta.status.error_code == FlowErrorCode.MISSING_SUCCESSOR
    assert len(delta.entries) == 2
    assert delta.entries[0].role == TranscriptRole.BOT
    assert delta.entries[0].error_code is None
    assert delta.entries[1].error_code == FlowErrorCode.MISSING_SUCCESSOR


def test_empty_choice_set():
    graph = FlowGraph()
    graph.create_step(StepKind.CHOICE_QUESTION, "Pick one", step_id="menu")

    delta = FlowInterpreter().start(graph, VariableStore())

    assert delta.status.state == RunState.FINISHED
    assert delta.status.error_code == FlowErrorCode.EMPTY_CHOICE_SET
    assert _texts(delta.entries)[0] == "bot:Pick one"
    assert delta.entries[-1].error_code == FlowErrorCode.EMPTY_CHOICE_SET


def test_empty_graph():
    delta = FlowInterpreter().start(FlowGraph(), VariableStore())
    assert delta.status.error_code == FlowErrorCode.UNDEFINED_ENTRY_POINT
    assert len(delta.entries) == 1


def test_dangling_choice(menu_flow):
    graph, variables = menu_flow
    graph.disconnect("menu", "opt_tea")
    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)

    delta = interpreter.submit_choice("opt_tea")
    assert _texts(delta.entries)[0] == "user:Tea"
    assert delta.status.error_code == FlowErrorCode.DANGLING_CHOICE


def test_step_limit_exceeded():
    """没有暂停点的环在步数上限处结束"""
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "ping", step_id="a")
    graph.create_step(StepKind.MESSAGE, "pong", step_id="b")
    graph.connect("a", "b")
    graph.connect("b", "a")

    delta = FlowInterpreter(max_steps=10).start(graph, VariableStore())

    assert delta.status.error_code == FlowErrorCode.STEP_LIMIT_EXCEEDED
    assert len([e for e in delta.entries if not e.is_error]) == 10


def test_zero_step_limit_is_kept(monkeypatch):
    """显式传入 0 不回退到配置值"""
    monkeypatch.setenv("INTERPRETER_MAX_STEPS", "50")
    reset_config()
    graph = FlowGraph()
    graph.create_step(StepKind.END, "Done", step_id="done")

    interpreter = FlowInterpreter(max_steps=0)
    delta = interpreter.start(graph, VariableStore())

    assert interpreter.max_steps == 0
    assert delta.status.error_code == FlowErrorCode.STEP_LIMIT_EXCEEDED


def test_step_limit_from_config(monkeypatch):
    monkeypatch.setenv("INTERPRETER_MAX_STEPS", "3")
    reset_config()
    assert FlowInterpreter().max_steps == 3


def test_missing_image_does_not_stop_run():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "Look", step_id="look")
    graph.create_step(StepKind.IMAGE, step_id="img")
    graph.create_step(StepKind.END, "Done", step_id="done")
    graph.connect("look", "img")
    graph.connect("img", "done")

    delta = FlowInterpreter().start(graph, VariableStore())

    assert delta.entries[1].error_code == FlowErrorCode.MISSING_IMAGE
    assert _texts(delta.entries)[-1] == "bot:Done"
    assert delta.status.outcome == RunOutcome.OK


def test_image_entry():
    graph = FlowGraph()
    graph.create_step(StepKind.IMAGE, step_id="img", image_url="https://example.com/cat.png")
    delta = FlowInterpreter().start(graph, VariableStore())
    assert delta.entries[0].role == TranscriptRole.IMAGE
    assert delta.entries[0].text == "https://example.com/cat.png"


def test_restart_recovers_after_error():
    graph = FlowGraph()
    step = graph.create_step(StepKind.MESSAGE, "Hello", step_id="hello")
    step.default_next = "ghost"
    interpreter = FlowInterpreter()
    interpreter.start(graph, VariableStore())

    step.default_next = None
    delta = interpreter.start(graph, VariableStore())
    assert delta.status.outcome == RunOutcome.OK
    assert [e.id for e in delta.entries] == ["msg_1"]


# ==================== 输入 ====================

def test_choice_selection(menu_flow):
    graph, variables = menu_flow
    interpreter = FlowInterpreter()
    delta = interpreter.start(graph, variables)

    assert delta.status.state == RunState.AWAITING_CHOICE
    assert [o.label for o in delta.status.options] == ["Tea", "Coffee"]

    delta = interpreter.submit_choice("opt_coffee")
    assert _texts(delta.entries) == ["user:Coffee", "bot:Enjoy your coffee"]
    assert delta.status.outcome == RunOutcome.OK


def test_unknown_choice_leaves_run_unchanged(menu_flow):
    graph, variables = menu_flow
    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)
    before = len(interpreter.run.transcript)

    with pytest.raises(UnknownChoiceError):
        interpreter.submit_choice("opt_milk")

    assert len(interpreter.run.transcript) == before
    assert interpreter.current_state().state == RunState.AWAITING_CHOICE


def test_input_in_wrong_state_raises(greeting_flow, menu_flow):
    graph, variables = greeting_flow
    interpreter = FlowInterpreter()

    with pytest.raises(InvalidRunStateError):
        interpreter.submit_text_answer("too early")

    interpreter.start(graph, variables)
    with pytest.raises(InvalidRunStateError):
        interpreter.submit_choice("opt_tea")

    interpreter.submit_text_answer("Ada")
    with pytest.raises(InvalidRunStateError):
        interpreter.submit_text_answer("too late")


def test_open_question_number_coercion():
    """数字变量的回答解析失败时存为 0"""
    variables = VariableStore([Variable("age", VariableType.NUMBER)])
    graph = FlowGraph()
    graph.create_step(StepKind.OPEN_QUESTION, "Age?", step_id="ask", bound_variable="age")
    graph.create_step(StepKind.END, "You are {{age}}", step_id="end")
    graph.connect("ask", "end")

    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)
    delta = interpreter.submit_text_answer("old")

    assert _texts(delta.entries)[-1] == "bot:You are 0"
    assert variables.get_value("age") == 0


def test_open_question_without_successor_finishes_ok():
    graph = FlowGraph()
    graph.create_step(StepKind.OPEN_QUESTION, "Anything?", step_id="ask")
    interpreter = FlowInterpreter()
    interpreter.start(graph, VariableStore())
    delta = interpreter.submit_text_answer("no")
    assert delta.status.outcome == RunOutcome.OK


# ==================== 变量步骤 ====================

def test_math_op_on_unset_variable():
    """未设置的变量按 0 计算"""
    variables = VariableStore([Variable("count", VariableType.NUMBER)])
    graph = FlowGraph()
    graph.create_step(
        StepKind.MATH_OP,
        step_id="add",
        bound_variable="count",
        math_operator=MathOperator.ADD,
        operand="5",
    )

    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)

    assert interpreter.run.variables.get_value("count") == 5
    assert variables.get_value("count") == 5


def test_math_op_operand_interpolation():
    variables = VariableStore([
        Variable("total", VariableType.NUMBER, 10.0),
        Variable("step", VariableType.NUMBER, 4.0),
    ])
    graph = FlowGraph()
    graph.create_step(
        StepKind.MATH_OP,
        step_id="mul",
        bound_variable="total",
        math_operator="*",
        operand="{{step}}",
    )
    FlowInterpreter().start(graph, variables)
    assert variables.get_value("total") == 40


def test_set_variable_interpolates_and_coerces():
    variables = VariableStore([
        Variable("first", VariableType.TEXT, "Ada"),
        Variable("greeting", VariableType.TEXT),
        Variable("score", VariableType.NUMBER),
    ])
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "Start", step_id="start")
    graph.create_step(
        StepKind.SET_VARIABLE, step_id="set1",
        bound_variable="greeting", assigned_value="Hello {{first}}",
    )
    graph.create_step(
        StepKind.SET_VARIABLE, step_id="set2",
        bound_variable="score", assigned_value="not a number",
    )
    graph.create_step(StepKind.END, "{{greeting}} ({{score}})", step_id="end")
    graph.connect("start", "set1")
    graph.connect("set1", "set2")
    graph.connect("set2", "end")

    delta = FlowInterpreter().start(graph, variables)

    assert _texts(delta.entries)[-1] == "bot:Hello Ada (0)"
    assert variables.get_value("greeting") == "Hello Ada"


def test_set_variable_absent_is_skipped():
    """绑定的变量不存在时跳过赋值，运行继续"""
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, "Start", step_id="start")
    graph.create_step(StepKind.SET_VARIABLE, step_id="set", bound_variable="ghost", assigned_value="x")
    graph.create_step(StepKind.END, "Done", step_id="end")
    graph.connect("start", "set")
    graph.connect("set", "end")

    variables = VariableStore()
    delta = FlowInterpreter().start(graph, variables)

    assert delta.status.outcome == RunOutcome.OK
    assert "ghost" not in variables


def test_snapshot_isolation_between_runs(greeting_flow):
    """运行中途的快照修改在回写点之前不影响共享存储"""
    graph, variables = greeting_flow
    first = FlowInterpreter()
    second = FlowInterpreter()
    first.start(graph, variables)
    second.start(graph, variables)

    first.submit_text_answer("Ada")
    assert second.run.variables.get_value("name") is None

    second.submit_text_answer("Grace")
    assert variables.get_value("name") == "Grace"


def test_run_log_records_steps(greeting_flow):
    graph, variables = greeting_flow
    interpreter = FlowInterpreter()
    interpreter.start(graph, variables)
    run = interpreter.run

    assert run.steps_executed == 2
    assert run.log.get_entries_by_step("hello")
    assert run.log.summary()["run_id"] == run.run_id

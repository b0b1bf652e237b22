"""
测试公共夹具
"""

import pytest

from chatflow.config import reset_config
from chatflow.flows import FlowGraph, StepKind, Variable, VariableStore, VariableType


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """每个测试使用干净的环境变量配置"""
    for name in (
        "SERVER_HOST",
        "SERVER_PORT",
        "SERVER_RELOAD",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "LOG_FILE_PATH",
        "INTERPRETER_MAX_STEPS",
        "SERVER_MAX_SESSIONS",
        "CORS_ALLOW_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def greeting_flow():
    """Hi {{name}} -> Name? -> Bye {{name}}，name 未设置"""
    variables = VariableStore([Variable("name", VariableType.TEXT)])
    graph = FlowGraph(name="greeting")
    hello = graph.create_step(StepKind.MESSAGE, "Hi {{name}}", step_id="hello")
    ask = graph.create_step(StepKind.OPEN_QUESTION, "Name?", step_id="ask", bound_variable="name")
    bye = graph.create_step(StepKind.END, "Bye {{name}}", step_id="bye")
    graph.connect(hello.id, ask.id)
    graph.connect(ask.id, bye.id)
    return graph, variables


@pytest.fixture
def menu_flow():
    """选择题 -> 两个结束步骤"""
    variables = VariableStore()
    graph = FlowGraph(name="menu")
    graph.create_step(StepKind.MESSAGE, "Welcome", step_id="welcome")
    menu = graph.create_step(StepKind.CHOICE_QUESTION, "Tea or coffee?", step_id="menu")
    graph.create_step(StepKind.END, "Enjoy your tea", step_id="tea")
    graph.create_step(StepKind.END, "Enjoy your coffee", step_id="coffee")
    menu.add_option("Tea", next_step_id="tea", choice_id="opt_tea")
    menu.add_option("Coffee", next_step_id="coffee", choice_id="opt_coffee")
    graph.connect("welcome", "menu")
    return graph, variables


@pytest.fixture
def quiz_flow():
    """覆盖所有步骤类型（图片除外）的流程"""
    variables = VariableStore()
    variables.create_variable("name", VariableType.TEXT)
    variables.create_variable("score", VariableType.NUMBER)

    graph = FlowGraph(name="quiz")
    graph.create_step(StepKind.MESSAGE, "Welcome", step_id="start")
    graph.create_step(StepKind.OPEN_QUESTION, "Your name?", step_id="ask", bound_variable="name")
    pick = graph.create_step(StepKind.CHOICE_QUESTION, "Add points?", step_id="pick")
    graph.create_step(
        StepKind.MATH_OP, step_id="add",
        bound_variable="score", math_operator="+", operand="10",
    )
    check = graph.create_step(StepKind.CONDITION, step_id="check")
    graph.create_step(StepKind.END, "Well done {{name}}, {{score}} points", step_id="high")
    graph.create_step(StepKind.END, "Bye {{name}}", step_id="low")

    pick.add_option("Yes", next_step_id="add", choice_id="yes")
    pick.add_option("No", next_step_id="check", choice_id="no")
    check.add_branch("score", ">=", 10, next_step_id="high", branch_id="rich")
    check.add_branch("score", "<", 10, next_step_id="low", branch_id="poor")

    graph.connect("start", "ask")
    graph.connect("ask", "pick")
    graph.connect("add", "check")
    return graph, variables

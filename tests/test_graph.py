"""
流程图编辑测试
"""

import pytest

from chatflow.flows import (
    ChoiceQuestionStep,
    Connection,
    DuplicateStepIdError,
    FlowGraph,
    InvalidConnectionError,
    InvalidStepFieldError,
    StepKind,
    StepNotFoundError,
)


def test_entry_step_is_first_message():
    graph = FlowGraph()
    graph.create_step(StepKind.OPEN_QUESTION, "Name?", step_id="ask")
    graph.create_step(StepKind.MESSAGE, "Hi", step_id="hi")
    assert graph.entry_step().id == "hi"


def test_entry_step_falls_back_to_first_step():
    graph = FlowGraph()
    graph.create_step(StepKind.OPEN_QUESTION, "Name?", step_id="ask")
    graph.create_step(StepKind.END, "Bye", step_id="bye")
    assert graph.entry_step().id == "ask"


def test_entry_step_empty_graph():
    assert FlowGraph().entry_step() is None


def test_duplicate_step_id():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, step_id="a")
    with pytest.raises(DuplicateStepIdError):
        graph.create_step(StepKind.END, step_id="a")


def test_connect_and_derive_connections(menu_flow):
    """连线由步骤内的后续 ID 推导"""
    graph, _ = menu_flow
    connections = graph.connections()
    assert Connection("welcome", "menu") in connections
    assert Connection("menu", "tea", "opt_tea") in connections
    assert Connection("menu", "coffee", "opt_coffee") in connections
    assert len(connections) == 3


def test_connect_requires_existing_steps():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, step_id="a")
    with pytest.raises(StepNotFoundError):
        graph.connect("a", "missing")
    with pytest.raises(StepNotFoundError):
        graph.connect("missing", "a")


def test_end_step_cannot_have_successors():
    graph = FlowGraph()
    graph.create_step(StepKind.END, step_id="end")
    graph.create_step(StepKind.MESSAGE, step_id="msg")
    with pytest.raises(InvalidConnectionError):
        graph.connect("end", "msg")
    assert graph.get_step("end").successor_ids() == []


def test_choice_step_requires_output_id(menu_flow):
    graph, _ = menu_flow
    with pytest.raises(InvalidConnectionError):
        graph.connect("menu", "tea")
    with pytest.raises(InvalidConnectionError):
        graph.connect("menu", "tea", "no_such_option")


def test_single_exit_step_rejects_output_id():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, step_id="a")
    graph.create_step(StepKind.END, step_id="b")
    with pytest.raises(InvalidConnectionError):
        graph.connect("a", "b", "opt")


def test_disconnect(menu_flow):
    graph, _ = menu_flow
    assert graph.disconnect("menu", "opt_tea") is True
    assert graph.disconnect("menu", "opt_tea") is False
    assert graph.get_step("menu").find_option("opt_tea").next_step_id is None
    assert graph.disconnect("welcome") is True
    assert graph.get_step("welcome").default_next is None


def test_remove_step_cascades_references(menu_flow):
    """删除步骤会清除所有指向它的连接"""
    graph, _ = menu_flow
    graph.connect("welcome", "tea")
    graph.remove_step("tea")

    assert "tea" not in graph
    assert graph.get_step("welcome").default_next is None
    assert graph.get_step("menu").find_option("opt_tea").next_step_id is None
    assert graph.dangling_references() == []


def test_dangling_reference_is_valid_graph_state():
    """编辑中允许指向不存在的步骤"""
    graph = FlowGraph()
    step = graph.create_step(StepKind.MESSAGE, step_id="a")
    step.default_next = "ghost"
    assert graph.connections() == []
    assert graph.dangling_references() == [Connection("a", "ghost")]


def test_update_step_fields():
    graph = FlowGraph()
    graph.create_step(StepKind.OPEN_QUESTION, step_id="ask")
    step = graph.update_step("ask", content="Age?", bound_variable="age")
    assert step.content == "Age?"
    assert step.bound_variable == "age"


def test_update_step_rejects_foreign_fields():
    graph = FlowGraph()
    graph.create_step(StepKind.MESSAGE, step_id="a")
    with pytest.raises(InvalidStepFieldError):
        graph.update_step("a", bound_variable="x")


def test_update_step_rejects_invalid_values():
    graph = FlowGraph()
    graph.create_step(StepKind.MATH_OP, step_id="m")
    with pytest.raises(InvalidStepFieldError):
        graph.update_step("m", math_operator="%")


def test_move_step_only_changes_position(menu_flow):
    graph, _ = menu_flow
    step = graph.move_step("welcome", 120, 40)
    assert (step.position.x, step.position.y) == (120, 40)
    assert step.default_next == "menu"


def test_image_source_is_exclusive():
    graph = FlowGraph()
    step = graph.create_step(StepKind.IMAGE, step_id="img", image_url="https://example.com/a.png")
    step.image_data = "data:image/png;base64,AAAA"
    assert step.image_url is None
    step.image_url = "https://example.com/b.png"
    assert step.image_data is None
    assert step.image_source == "https://example.com/b.png"


def test_choice_options_editing():
    step = ChoiceQuestionStep(step_id="q")
    option = step.add_option("Yes")
    assert step.find_option(option.id) is option
    assert step.remove_option(option.id) is True
    assert step.options == []


def test_reachable_from(menu_flow):
    graph, _ = menu_flow
    graph.create_step(StepKind.MESSAGE, step_id="island")
    assert graph.reachable_from("welcome") == {"welcome", "menu", "tea", "coffee"}
    assert graph.predecessors("menu") == ["welcome"]

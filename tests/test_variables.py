"""
变量存储测试
"""

import math

import pytest

from chatflow.flows import (
    DuplicateNameError,
    InvalidNameError,
    UnknownVariableError,
    Variable,
    VariableStore,
    VariableType,
    format_value,
    parse_number,
)


def test_create_variable_initial_values():
    """数字初始为 0，文本初始为空"""
    store = VariableStore()
    assert store.create_variable("count", "number").value == 0
    assert store.create_variable("name", VariableType.TEXT).value == ""
    assert store.names == ["count", "name"]


def test_create_variable_rejects_duplicates():
    store = VariableStore()
    store.create_variable("name", "text")
    with pytest.raises(DuplicateNameError) as exc_info:
        store.create_variable("name", "number")
    assert exc_info.value.code == "DuplicateName"


@pytest.mark.parametrize("name", ["", "1abc", "has space", "a-b", "{{x}}", None])
def test_create_variable_rejects_invalid_names(name):
    with pytest.raises(InvalidNameError):
        VariableStore().create_variable(name, "text")


def test_legacy_string_type_is_text():
    store = VariableStore()
    assert store.create_variable("name", "string").type == VariableType.TEXT


def test_remove_variable():
    store = VariableStore()
    store.create_variable("name", "text")
    assert store.remove_variable("name") is True
    assert store.remove_variable("name") is False
    assert "name" not in store


def test_set_value_coerces_to_type():
    """数字解析失败为 0"""
    store = VariableStore()
    store.create_variable("count", "number")
    store.create_variable("label", "text")

    assert store.set_value("count", "42").value == 42
    assert store.set_value("count", "abc").value == 0
    assert store.set_value("count", "").value == 0
    assert store.set_value("label", 3.0).value == "3"


def test_set_value_unknown_variable():
    with pytest.raises(UnknownVariableError):
        VariableStore().set_value("ghost", 1)


def test_snapshot_is_isolated():
    """修改快照不影响共享存储"""
    shared = VariableStore()
    shared.create_variable("count", "number")

    snapshot = shared.snapshot()
    snapshot.set_value("count", 7)

    assert shared.get_value("count") == 0
    assert snapshot.get_value("count") == 7


def test_merge_back_only_updates_shared_variables():
    """快照中新增的变量不会进入共享存储"""
    shared = VariableStore()
    shared.create_variable("count", "number")
    snapshot = shared.snapshot()
    snapshot.set_value("count", 3)
    snapshot.create_variable("extra", "text")

    shared.merge_back(snapshot)

    assert shared.get_value("count") == 3
    assert "extra" not in shared


def test_merge_back_last_writer_wins():
    shared = VariableStore()
    shared.create_variable("count", "number")
    first, second = shared.snapshot(), shared.snapshot()
    first.set_value("count", 1)
    second.set_value("count", 2)

    shared.merge_back(first)
    shared.merge_back(second)
    assert shared.get_value("count") == 2


def test_to_dict_and_from_dict():
    store = VariableStore([
        Variable("count", VariableType.NUMBER, 5.0),
        Variable("name", VariableType.TEXT),
    ])
    data = store.to_dict()
    assert data == {
        "count": {"name": "count", "type": "number", "value": 5},
        "name": {"name": "name", "type": "text", "value": None},
    }

    restored = VariableStore.from_dict(data)
    assert restored.get("count").value == 5.0
    assert restored.get("name").is_set is False


@pytest.mark.parametrize("value, expected", [
    ("12", 12.0),
    (" 1.5 ", 1.5),
    ("-3e2", -300.0),
    ("", 0.0),
    ("abc", None),
    ("1,5", None),
    ("Infinity", float("inf")),
    ("-Infinity", float("-inf")),
    ("NaN", None),
    (True, None),
    (None, None),
])
def test_parse_number(value, expected):
    assert parse_number(value) == expected


@pytest.mark.parametrize("value, expected", [
    (None, ""),
    ("text", "text"),
    (5.0, "5"),
    (0.1, "0.1"),
    (float("inf"), "Infinity"),
    (float("-inf"), "-Infinity"),
    (float("nan"), "NaN"),
])
def test_format_value(value, expected):
    assert format_value(value) == expected


def test_non_finite_numbers_survive_round_trip():
    """除零得到的无穷和 NaN 以文本形式导出"""
    store = VariableStore()
    store.create_variable("ratio", "number")
    store.create_variable("neg", "number")
    store.create_variable("undefined", "number")
    store.set_value("ratio", float("inf"))
    store.set_value("neg", float("-inf"))
    store.set_value("undefined", float("nan"))

    data = store.to_dict()
    assert data["ratio"]["value"] == "Infinity"
    assert data["neg"]["value"] == "-Infinity"
    assert data["undefined"]["value"] == "NaN"

    restored = VariableStore.from_dict(data)
    assert restored.get("ratio").value == float("inf")
    assert restored.get("neg").value == float("-inf")
    assert math.isnan(restored.get("undefined").value)
    assert restored.to_dict() == data

"""
命令行测试
"""

import json
import logging

import pytest
import yaml

from chatflow.cli import build_parser, main
from chatflow.flows import FlowParser


@pytest.fixture(autouse=True)
def restore_logging():
    """main() 会为 chatflow 记录器安装处理器，测试结束后移除"""
    logger = logging.getLogger("chatflow")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def quiz_file(tmp_path, quiz_flow):
    graph, variables = quiz_flow
    return str(FlowParser().save_file(tmp_path / "quiz.json", graph, variables))


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_with_inputs(quiz_file, capsys):
    assert main(["run", quiz_file, "-i", "Ada", "-i", "Yes"]) == 0
    out = capsys.readouterr().out
    assert "Welcome" in out
    assert "Well done Ada, 10 points" in out


def test_run_stops_when_inputs_run_out(quiz_file, capsys):
    assert main(["run", quiz_file, "-i", "Ada"]) == 2
    assert "awaiting_choice" in capsys.readouterr().out


def test_run_with_runtime_error(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({
        "steps": [{"id": "hi", "kind": "message", "content": "Hi", "default_next": "ghost"}],
    }), encoding="utf-8")
    assert main(["run", str(path), "-i", "unused"]) == 1
    assert "MissingSuccessor" in capsys.readouterr().out


def test_run_interactive(quiz_file, monkeypatch, capsys):
    answers = iter(["Ada", "9", "2"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    assert main(["run", quiz_file]) == 0
    out = capsys.readouterr().out
    assert "没有这个选项" in out
    assert "Bye Ada" in out


def test_run_interactive_eof(quiz_file, monkeypatch):
    def _eof(prompt=""):
        raise EOFError
    monkeypatch.setattr("builtins.input", _eof)
    assert main(["run", quiz_file]) == 130


def test_validate_clean(quiz_file, capsys):
    assert main(["validate", quiz_file]) == 0
    assert "没有发现问题" in capsys.readouterr().out


def test_validate_reports_errors(tmp_path, capsys):
    path = tmp_path / "loop.yaml"
    path.write_text(yaml.safe_dump({
        "steps": [
            {"id": "a", "kind": "message", "content": "ping", "default_next": "b"},
            {"id": "b", "kind": "message", "content": "pong", "default_next": "a"},
        ],
    }), encoding="utf-8")
    assert main(["validate", str(path)]) == 1
    assert "INFINITE_LOOP" in capsys.readouterr().out


def test_convert_to_yaml(quiz_file, capsys):
    assert main(["convert", quiz_file, "--to", "yaml"]) == 0
    document = yaml.safe_load(capsys.readouterr().out)
    assert document["name"] == "quiz"


def test_convert_to_file(quiz_file, tmp_path):
    target = tmp_path / "out" / "quiz.yaml"
    assert main(["convert", quiz_file, "-o", str(target)]) == 0
    assert FlowParser().load_file(target).graph.step_ids[0] == "start"


def test_missing_file(tmp_path, capsys):
    assert main(["validate", str(tmp_path / "nope.json")]) == 2
    assert "文件不存在" in capsys.readouterr().out


def test_invalid_document(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    assert main(["run", str(path)]) == 2

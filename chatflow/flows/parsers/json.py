"""
流程文档解析器

负责流程图与导出文档（JSON / YAML）之间的转换。

导出文档结构:
    {
        "version": 1,
        "name": "...",
        "steps": [...],
        "connections": [...],   # 由步骤推导，导入时忽略
        "variables": {"name": {"name": ..., "type": ..., "value": ...}}
    }

也可以导入旧版编辑器的文档（blocks / type / nextBlockId 等驼峰字段）。
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml

from ..errors import FlowError, FlowParseError
from ..graph import FlowGraph
from ..steps import StepFactory, StepKind
from ..variables import VariableStore


logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

# 旧版字段名 -> 当前字段名
_LEGACY_STEP_FIELDS = {
    "type": "kind",
    "nextBlockId": "default_next",
    "variableName": "bound_variable",
    "variableValue": "assigned_value",
    "imageUrl": "image_url",
    "imageData": "image_data",
    "mathOperator": "math_operator",
    "choices": "options",
    "conditions": "branches",
    "defaultNext": "default_next",
    "boundVariable": "bound_variable",
    "assignedValue": "assigned_value",
}

_LEGACY_OUTPUT_FIELDS = {
    "nextBlockId": "next_step_id",
    "nextStepId": "next_step_id",
    "variableName": "variable_name",
    "comparisonValue": "value",
}


@dataclass
class ParsedFlow:
    """解析结果"""
    name: str
    graph: FlowGraph
    variables: VariableStore


class FlowParser:
    """
    流程解析器

    负责将各种格式的流程文档解析为流程图和变量存储，以及反向导出。
    """

    def __init__(self):
        self.step_kind_map = {kind.value: kind for kind in StepKind}
        self.step_kind_map.update({
            "open_question": StepKind.OPEN_QUESTION,
            "choice_question": StepKind.CHOICE_QUESTION,
            "set_variable": StepKind.SET_VARIABLE,
            "math_op": StepKind.MATH_OP,
            "mathOperation": StepKind.MATH_OP,
        })

    # ========== 导出 ==========

    def export(self, graph: FlowGraph, variables: VariableStore) -> Dict[str, Any]:
        """
        导出流程文档

        Args:
            graph: 流程图
            variables: 变量存储

        Returns:
            可直接序列化为 JSON / YAML 的字典
        """
        return {
            "version": FORMAT_VERSION,
            "name": graph.name,
            "steps": [step.to_dict() for step in graph.steps],
            "connections": [c.to_dict() for c in graph.connections()],
            "variables": variables.to_dict(),
        }

    def dump_json(self, graph: FlowGraph, variables: VariableStore, indent: int = 2) -> str:
        """导出为 JSON 字符串"""
        return json.dumps(self.export(graph, variables), ensure_ascii=False, indent=indent)

    def dump_yaml(self, graph: FlowGraph, variables: VariableStore) -> str:
        """导出为 YAML 字符串"""
        return yaml.safe_dump(
            self.export(graph, variables),
            allow_unicode=True,
            sort_keys=False,
        )

    # ========== 导入 ==========

    def parse(self, data: Dict[str, Any]) -> ParsedFlow:
        """
        解析流程文档

        Raises:
            FlowParseError: 文档结构不合法
        """
        if not isinstance(data, dict):
            raise FlowParseError("流程文档必须是对象")

        normalized = self.normalize(data)
        try:
            variables = VariableStore.from_dict(normalized["variables"])
            steps = [StepFactory.create(step) for step in normalized["steps"]]
            graph = FlowGraph(steps, name=normalized["name"])
        except FlowParseError:
            raise
        except FlowError as e:
            raise FlowParseError(f"流程文档不合法: {e.message}", e.details) from e
        except (KeyError, TypeError, ValueError) as e:
            raise FlowParseError(f"流程文档不合法: {e}") from e

        return ParsedFlow(name=normalized["name"], graph=graph, variables=variables)

    def normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """将文档转换为当前格式的字典（不创建对象）"""
        steps = data.get("steps")
        if steps is None:
            steps = data.get("blocks", [])
        if not isinstance(steps, list):
            raise FlowParseError("steps 必须是列表")

        return {
            "name": data.get("name") or "Untitled Flow",
            "steps": [self._normalize_step(step, i) for i, step in enumerate(steps)],
            "variables": self._normalize_variables(data.get("variables") or {}),
        }

    def _normalize_step(self, step: Any, index: int) -> Dict[str, Any]:
        """解析单个步骤"""
        if not isinstance(step, dict):
            raise FlowParseError(f"步骤 {index} 必须是对象")

        parsed = {_LEGACY_STEP_FIELDS.get(k, k): v for k, v in step.items()}

        kind_name = parsed.get("kind")
        kind = self.step_kind_map.get(kind_name)
        if kind is None:
            raise FlowParseError(f"未知步骤类型: {kind_name}", {"index": index})
        parsed["kind"] = kind.value

        if not parsed.get("id"):
            raise FlowParseError(f"步骤 {index} 缺少 ID", {"index": index})

        if kind == StepKind.END and parsed.get("default_next"):
            logger.warning(f"结束步骤 {parsed['id']} 的后续连接已忽略")
            parsed.pop("default_next")

        # 旧版算术步骤用 variableValue 保存操作数
        if kind == StepKind.MATH_OP and "operand" not in parsed and "assigned_value" in parsed:
            parsed["operand"] = parsed.pop("assigned_value")

        if "options" in parsed:
            parsed["options"] = self._normalize_outputs(parsed["options"])
        if "branches" in parsed:
            parsed["branches"] = self._normalize_outputs(parsed["branches"])

        return parsed

    def _normalize_outputs(self, outputs: Any) -> List[Dict[str, Any]]:
        if not isinstance(outputs, list):
            raise FlowParseError("选项和分支必须是列表")
        normalized = []
        for index, item in enumerate(outputs):
            if not isinstance(item, dict):
                raise FlowParseError(f"选项或分支 {index} 必须是对象", {"index": index})
            normalized.append({_LEGACY_OUTPUT_FIELDS.get(k, k): v for k, v in item.items()})
        return normalized

    def _normalize_variables(
        self,
        variables: Union[Dict[str, Any], List[Dict[str, Any]]],
    ) -> Dict[str, Dict[str, Any]]:
        """解析变量定义（支持字典和列表两种形式）"""
        if isinstance(variables, list):
            items = [(var.get("name") if isinstance(var, dict) else index, var)
                     for index, var in enumerate(variables)]
        elif isinstance(variables, dict):
            items = list(variables.items())
        else:
            raise FlowParseError("variables 必须是对象或列表")

        parsed = {}
        for name, var in items:
            if not isinstance(var, dict):
                raise FlowParseError(f"变量 {name} 定义不合法")
            name = var.get("name", name)
            parsed[name] = {
                "name": name,
                "type": var.get("type", "text"),
                "value": var.get("value"),
            }
        return parsed

    def parse_from_json(self, json_data: str) -> ParsedFlow:
        """从 JSON 字符串解析流程"""
        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            raise FlowParseError(f"JSON 格式错误: {e}") from e
        return self.parse(data)

    def parse_from_yaml(self, yaml_data: str) -> ParsedFlow:
        """从 YAML 字符串解析流程"""
        try:
            data = yaml.safe_load(yaml_data)
        except yaml.YAMLError as e:
            raise FlowParseError(f"YAML 格式错误: {e}") from e
        return self.parse(data)

    # ========== 文件 ==========

    @staticmethod
    def detect_format(path: Union[str, Path]) -> str:
        """根据扩展名判断格式"""
        return "yaml" if Path(path).suffix.lower() in (".yaml", ".yml") else "json"

    def load_file(self, path: Union[str, Path]) -> ParsedFlow:
        """从文件导入"""
        text = Path(path).read_text(encoding="utf-8")
        if self.detect_format(path) == "yaml":
            return self.parse_from_yaml(text)
        return self.parse_from_json(text)

    def save_file(self, path: Union[str, Path], graph: FlowGraph, variables: VariableStore) -> Path:
        """导出到文件"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if self.detect_format(path) == "yaml":
            text = self.dump_yaml(graph, variables)
        else:
            text = self.dump_json(graph, variables)
        path.write_text(text, encoding="utf-8")
        return path


def load_flow(path: Union[str, Path]) -> Tuple[FlowGraph, VariableStore]:
    """便捷函数：从文件导入流程图和变量"""
    parsed = FlowParser().load_file(path)
    return parsed.graph, parsed.variables


__all__ = [
    "FORMAT_VERSION",
    "ParsedFlow",
    "FlowParser",
    "load_flow",
]

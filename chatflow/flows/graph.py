"""
流程图模块

保存有序的步骤集合，并提供编辑器需要的操作（添加、修改、移动、连接、断开、删除）。

步骤内部保存的后续步骤 ID 是连接关系的唯一来源，
画布使用的连线列表由 connections() 实时推导。
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from .errors import DuplicateStepIdError, InvalidConnectionError, StepNotFoundError
from .steps import FlowStep, Position, StepFactory, StepKind


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connection:
    """画布连线（由步骤推导，不单独保存）"""
    from_step_id: str
    to_step_id: str
    from_output_id: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.from_step_id}:{self.from_output_id or 'next'}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_step_id": self.from_step_id,
            "from_output_id": self.from_output_id,
            "to_step_id": self.to_step_id,
        }


class FlowGraph:
    """
    流程图

    步骤按作者定义的顺序保存，顺序决定入口步骤的选择。

    Attributes:
        name: 流程名称
    """

    def __init__(self, steps: List[FlowStep] = None, name: str = "Untitled Flow"):
        self.name = name
        self._steps: List[FlowStep] = []
        self._index: Dict[str, FlowStep] = {}
        for step in steps or []:
            self.add_step(step)

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[FlowStep]:
        return iter(list(self._steps))

    def __contains__(self, step_id: str) -> bool:
        return step_id in self._index

    @property
    def steps(self) -> List[FlowStep]:
        return list(self._steps)

    @property
    def step_ids(self) -> List[str]:
        return [step.id for step in self._steps]

    def get_step(self, step_id: Optional[str]) -> Optional[FlowStep]:
        """获取步骤，不存在时返回 None"""
        if step_id is None:
            return None
        return self._index.get(step_id)

    def require_step(self, step_id: str) -> FlowStep:
        """
        获取步骤

        Raises:
            StepNotFoundError: 步骤不存在
        """
        step = self._index.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        return step

    def entry_step(self) -> Optional[FlowStep]:
        """
        入口步骤

        第一个消息步骤；没有消息步骤时为第一个步骤；空图返回 None。
        """
        for step in self._steps:
            if step.kind == StepKind.MESSAGE:
                return step
        return self._steps[0] if self._steps else None

    # ========== 编辑操作 ==========

    def add_step(self, step: FlowStep, index: int = None) -> FlowStep:
        """
        添加步骤

        Raises:
            DuplicateStepIdError: 步骤 ID 重复
        """
        if step.id in self._index:
            raise DuplicateStepIdError(step.id)
        if index is None:
            self._steps.append(step)
        else:
            self._steps.insert(index, step)
        self._index[step.id] = step
        return step

    def create_step(
        self,
        kind: Union[StepKind, str],
        content: str = "",
        position: Position = None,
        step_id: str = None,
        **fields: Any,
    ) -> FlowStep:
        """按类型创建并添加步骤"""
        step = StepFactory.create_kind(
            StepKind(kind),
            step_id=step_id,
            content=content,
            position=position,
        )
        if fields:
            step.update(**fields)
        self.add_step(step)
        logger.debug(f"添加步骤: {step.id} ({step.kind.value})")
        return step

    def update_step(self, step_id: str, **fields: Any) -> FlowStep:
        """修改步骤字段"""
        step = self.require_step(step_id)
        step.update(**fields)
        return step

    def move_step(self, step_id: str, x: float, y: float) -> FlowStep:
        """移动步骤（只改变画布坐标）"""
        step = self.require_step(step_id)
        step.position = Position(x=x, y=y)
        return step

    def remove_step(self, step_id: str) -> FlowStep:
        """
        删除步骤

        同时清除所有指向该步骤的连接。

        Raises:
            StepNotFoundError: 步骤不存在
        """
        step = self.require_step(step_id)
        self._steps.remove(step)
        del self._index[step_id]

        cleared = sum(other.clear_references(step_id) for other in self._steps)
        logger.debug(f"删除步骤: {step_id}，清除 {cleared} 条连接")
        return step

    def connect(self, from_step_id: str, to_step_id: str, output_id: str = None) -> Connection:
        """
        连接两个步骤

        单一出口的步骤不传 output_id；选择题和条件步骤传选项/分支 ID。

        Raises:
            StepNotFoundError: 任一步骤不存在
            InvalidConnectionError: 源步骤没有该出口（包括结束步骤）
        """
        source = self.require_step(from_step_id)
        self.require_step(to_step_id)
        source.set_successor(output_id, to_step_id)
        return Connection(from_step_id, to_step_id, output_id)

    def disconnect(self, from_step_id: str, output_id: str = None) -> bool:
        """
        断开出口

        Returns:
            bool: 出口原先是否有连接
        """
        source = self.require_step(from_step_id)
        for current_output, target in source.outputs():
            if current_output == output_id:
                source.set_successor(output_id, None)
                return target is not None
        raise InvalidConnectionError(
            f"步骤 {from_step_id} 没有出口: {output_id}",
            {"step_id": from_step_id, "output_id": output_id},
        )

    # ========== 查询 ==========

    def connections(self) -> List[Connection]:
        """推导画布连线（只包含目标存在的连接）"""
        result = []
        for step in self._steps:
            for output_id, target in step.outputs():
                if target is not None and target in self._index:
                    result.append(Connection(step.id, target, output_id))
        return result

    def dangling_references(self) -> List[Connection]:
        """指向不存在步骤的连接"""
        result = []
        for step in self._steps:
            for output_id, target in step.outputs():
                if target is not None and target not in self._index:
                    result.append(Connection(step.id, target, output_id))
        return result

    def successors(self, step_id: str) -> List[str]:
        """获取存在的后续步骤 ID"""
        step = self.require_step(step_id)
        return [t for t in step.successor_ids() if t in self._index]

    def predecessors(self, step_id: str) -> List[str]:
        """获取指向该步骤的步骤 ID"""
        return [s.id for s in self._steps if step_id in s.successor_ids()]

    def reachable_from(self, step_id: str) -> Set[str]:
        """从指定步骤可到达的步骤 ID（包括自身）"""
        seen: Set[str] = set()
        stack = [step_id] if step_id in self._index else []
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.successors(current))
        return seen

    def __repr__(self) -> str:
        return f"FlowGraph(name={self.name!r}, steps={len(self._steps)})"


__all__ = [
    "Connection",
    "FlowGraph",
]

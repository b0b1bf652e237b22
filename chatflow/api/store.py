"""
内存存储

保存编辑中的流程和预览会话。只在进程内有效，持久化依靠导出/导入。
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from chatflow.flows import (
    FlowError,
    FlowGraph,
    FlowInterpreter,
    TranscriptDelta,
    VariableStore,
)


logger = logging.getLogger(__name__)


class FlowNotFoundError(FlowError):
    """流程不存在"""
    code = "FlowNotFound"

    def __init__(self, flow_id: str):
        super().__init__(f"流程不存在: {flow_id}", {"flow_id": flow_id})


class SessionNotFoundError(FlowError):
    """预览会话不存在"""
    code = "SessionNotFound"

    def __init__(self, session_id: str):
        super().__init__(f"会话不存在: {session_id}", {"session_id": session_id})


@dataclass
class FlowRecord:
    """已保存的流程"""
    id: str
    graph: FlowGraph
    variables: VariableStore
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def name(self) -> str:
        return self.graph.name

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()


class FlowRepository:
    """流程仓库"""

    def __init__(self):
        self._flows: Dict[str, FlowRecord] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def create(
        self,
        graph: FlowGraph,
        variables: VariableStore,
        description: str = None,
    ) -> FlowRecord:
        """保存新流程"""
        record = FlowRecord(
            id=f"flow_{uuid.uuid4().hex[:12]}",
            graph=graph,
            variables=variables,
            description=description,
        )
        self._flows[record.id] = record
        logger.info(f"创建流程: {record.id} ({record.name})")
        return record

    def get(self, flow_id: str) -> FlowRecord:
        """
        获取流程

        Raises:
            FlowNotFoundError: 流程不存在
        """
        record = self._flows.get(flow_id)
        if record is None:
            raise FlowNotFoundError(flow_id)
        return record

    def list(self) -> List[FlowRecord]:
        """按创建时间排列的所有流程"""
        return sorted(self._flows.values(), key=lambda r: r.created_at)

    def delete(self, flow_id: str) -> FlowRecord:
        """删除流程"""
        record = self.get(flow_id)
        del self._flows[flow_id]
        logger.info(f"删除流程: {flow_id}")
        return record


@dataclass
class PreviewSession:
    """
    预览会话

    每个会话持有独立的解释器；多个会话可以同时预览同一个流程，
    它们对流程共享变量的回写以后写者为准。
    """
    id: str
    flow: FlowRecord
    interpreter: FlowInterpreter
    created_at: datetime = field(default_factory=datetime.utcnow)

    def restart(self) -> TranscriptDelta:
        """从头开始运行（读取流程当前的图和变量）"""
        return self.interpreter.start(self.flow.graph, self.flow.variables)


class SessionRegistry:
    """预览会话注册表"""

    def __init__(self, max_steps: int = None, max_sessions: int = 100):
        self.max_steps = max_steps
        self.max_sessions = max_sessions
        # 按创建顺序排列
        self._sessions: Dict[str, PreviewSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, flow: FlowRecord) -> PreviewSession:
        """创建会话（不启动运行）"""
        session = PreviewSession(
            id=f"session_{uuid.uuid4().hex[:12]}",
            flow=flow,
            interpreter=FlowInterpreter(max_steps=self.max_steps),
        )
        self._evict_oldest()
        self._sessions[session.id] = session
        logger.info(f"创建预览会话: {session.id} (流程 {flow.id})")
        return session

    def _evict_oldest(self) -> None:
        """会话数量达到上限时关闭最早创建的会话"""
        while self._sessions and len(self._sessions) >= self.max_sessions:
            oldest = next(iter(self._sessions))
            del self._sessions[oldest]
            logger.info(f"预览会话数量达到上限 {self.max_sessions}，关闭会话: {oldest}")

    def get(self, session_id: str) -> PreviewSession:
        """
        获取会话

        Raises:
            SessionNotFoundError: 会话不存在
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete(self, session_id: str) -> None:
        """关闭会话"""
        self.get(session_id)
        del self._sessions[session_id]

    def delete_for_flow(self, flow_id: str) -> int:
        """关闭某个流程的所有会话，返回关闭数量"""
        stale = [sid for sid, s in self._sessions.items() if s.flow.id == flow_id]
        for session_id in stale:
            del self._sessions[session_id]
        return len(stale)


__all__ = [
    "FlowNotFoundError",
    "SessionNotFoundError",
    "FlowRecord",
    "FlowRepository",
    "PreviewSession",
    "SessionRegistry",
]

"""
运行日志模块

记录单次流程运行中每个步骤的执行情况。
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class RunLogEntry:
    """运行日志条目"""
    id: str
    timestamp: str
    level: str
    run_id: str
    step_id: Optional[str]
    step_kind: Optional[str]
    message: str
    duration_ms: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level,
            "run_id": self.run_id,
            "step_id": self.step_id,
            "step_kind": self.step_kind,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "result": self.result,
            "error": self.error,
            "context": self.context,
        }


class RunLogger:
    """
    运行日志记录器

    条目保存在内存中供预览界面查看，同时转发到 chatflow.run 日志记录器。

    Attributes:
        run_id: 运行 ID
        entries: 日志条目列表
    """

    def __init__(self, run_id: str = None):
        self.run_id = run_id or str(uuid.uuid4())
        self.entries: List[RunLogEntry] = []
        self.logger = logging.getLogger("chatflow.run")
        self._start_time: Optional[datetime] = None
        self._current_step: Optional[str] = None
        self._current_kind: Optional[str] = None
        self._step_start_time: Optional[float] = None

    def start(self) -> None:
        """开始记录"""
        self._start_time = datetime.utcnow()

    def log(
        self,
        level: str,
        message: str,
        step_id: str = None,
        step_kind: str = None,
        duration_ms: int = None,
        result: Dict[str, Any] = None,
        error: Dict[str, Any] = None,
        **context,
    ) -> str:
        """
        记录日志

        Args:
            level: 日志级别
            message: 日志消息
            step_id: 步骤 ID
            step_kind: 步骤类型
            duration_ms: 持续时间（毫秒）
            result: 步骤结果
            error: 错误信息
            **context: 额外上下文

        Returns:
            日志条目 ID
        """
        entry = RunLogEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.utcnow().isoformat(),
            level=level,
            run_id=self.run_id,
            step_id=step_id,
            step_kind=step_kind,
            message=message,
            duration_ms=duration_ms,
            result=result,
            error=error,
            context=context,
        )
        self.entries.append(entry)

        self.logger.log(
            getattr(logging, level.upper()),
            f"[{step_id or 'run'}] {message}",
            extra={
                "run_id": self.run_id,
                "step_id": step_id,
                "step_kind": step_kind,
                "duration_ms": duration_ms,
                "result": result,
            },
        )
        return entry.id

    def debug(self, message: str, **context) -> str:
        return self.log("debug", message, **context)

    def info(self, message: str, **context) -> str:
        return self.log("info", message, **context)

    def warning(self, message: str, **context) -> str:
        return self.log("warning", message, **context)

    def error(self, message: str, error: Dict[str, Any] = None, **context) -> str:
        return self.log("error", message, error=error, **context)

    def step_start(self, step_id: str, step_kind: str = None) -> None:
        """步骤开始"""
        self._current_step = step_id
        self._current_kind = step_kind
        self._step_start_time = time.perf_counter()

    def step_end(
        self,
        status: str,
        result: Dict[str, Any] = None,
        error: Dict[str, Any] = None,
    ) -> None:
        """步骤结束"""
        duration_ms = None
        if self._step_start_time is not None:
            duration_ms = int((time.perf_counter() - self._step_start_time) * 1000)

        self.log(
            level="error" if error else "debug",
            message=f"步骤 {self._current_kind or ''} -> {status}",
            step_id=self._current_step,
            step_kind=self._current_kind,
            duration_ms=duration_ms,
            result=result,
            error=error,
        )

        self._current_step = None
        self._current_kind = None
        self._step_start_time = None

    def get_entries_by_level(self, level: str) -> List[RunLogEntry]:
        """按级别获取日志条目"""
        return [e for e in self.entries if e.level == level]

    def get_entries_by_step(self, step_id: str) -> List[RunLogEntry]:
        """按步骤获取日志条目"""
        return [e for e in self.entries if e.step_id == step_id]

    def get_errors(self) -> List[RunLogEntry]:
        """获取所有错误日志"""
        return self.get_entries_by_level("error")

    def get_duration_ms(self) -> Optional[int]:
        """获取从开始到最后一条日志的时间（毫秒）"""
        if not self._start_time or not self.entries:
            return None
        last = datetime.fromisoformat(self.entries[-1].timestamp)
        return int((last - self._start_time).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "start_time": self._start_time.isoformat() if self._start_time else None,
            "entries": [e.to_dict() for e in self.entries],
            "entry_count": len(self.entries),
            "error_count": len(self.get_errors()),
            "duration_ms": self.get_duration_ms(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent, default=str)

    def save_to_file(self, filepath: str) -> None:
        """保存到文件"""
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())

    def summary(self) -> Dict[str, Any]:
        """获取运行摘要"""
        return {
            "run_id": self.run_id,
            "entry_count": len(self.entries),
            "error_count": len(self.get_errors()),
            "duration_ms": self.get_duration_ms(),
            "entries_by_level": {
                level: len(self.get_entries_by_level(level))
                for level in ["debug", "info", "warning", "error"]
            },
        }


__all__ = [
    "RunLogEntry",
    "RunLogger",
]

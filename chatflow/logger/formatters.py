"""
日志格式化模块

提供多种日志格式化器。
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict


class BaseFormatter(ABC):
    """日志格式化器基类"""

    @abstractmethod
    def format(self, record: logging.LogRecord) -> str:
        """格式化日志记录"""
        ...


class SimpleFormatter(BaseFormatter):
    """简单格式化器"""

    def __init__(self, fmt: str = None):
        self.fmt = fmt or "%(message)s"

    def format(self, record: logging.LogRecord) -> str:
        values = dict(record.__dict__)
        values["message"] = record.getMessage()
        return self.fmt % values


class DetailedFormatter(BaseFormatter):
    """详细格式化器"""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_function: bool = False,
        include_line: bool = False,
    ):
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_function = include_function
        self.include_line = include_line

    def format(self, record: logging.LogRecord) -> str:
        parts = []

        if self.include_timestamp:
            parts.append(self._format_timestamp(record.created))

        if self.include_level:
            parts.append(f"[{record.levelname:8}]")

        if self.include_logger:
            parts.append(f"[{record.name}]")

        if self.include_function:
            parts.append(f"[{record.funcName}]")

        if self.include_line:
            parts.append(f"[line {record.lineno}]")

        run_id = getattr(record, "run_id", None)
        if run_id:
            parts.append(f"[run {run_id}]")

        parts.append(record.getMessage())

        text = " ".join(parts)
        if record.exc_info:
            text += "\n" + logging.Formatter().formatException(record.exc_info)
        return text

    def _format_timestamp(self, timestamp: float) -> str:
        """格式化时间戳"""
        dt = datetime.fromtimestamp(timestamp)
        return dt.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


class JSONFormatter(BaseFormatter):
    """JSON 格式化器"""

    def __init__(
        self,
        extra_fields: Dict[str, Any] = None,
        include_logger: bool = True,
        include_function: bool = True,
    ):
        self.extra_fields = extra_fields or {}
        self.include_logger = include_logger
        self.include_function = include_function

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name if self.include_logger else None,
            "module": record.module,
        }

        if self.include_function:
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        log_entry.update(self.extra_fields)

        for key in ("run_id", "step_id", "step_kind"):
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class StructuredFormatter(BaseFormatter):
    """结构化格式化器（推荐用于机器解析）"""

    def __init__(self, extra_fields: Dict[str, Any] = None):
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": {
                "id": record.process,
                "name": record.processName,
            },
            "thread": {
                "id": record.thread,
                "name": record.threadName,
            },
        }

        log_entry.update(self.extra_fields)

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self._format_traceback(record.exc_info[2]),
            }

        # 运行日志附带的字段
        run = {
            key: getattr(record, key)
            for key in ("run_id", "step_id", "step_kind", "duration_ms", "result")
            if getattr(record, key, None) is not None
        }
        if run:
            log_entry["run"] = run

        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def _format_traceback(self, tb) -> list:
        """格式化回溯信息"""
        lines = []
        while tb:
            code = tb.tb_frame.f_code
            lines.append(f'  File "{code.co_filename}", line {tb.tb_lineno}, in {code.co_name}')
            tb = tb.tb_next
        return lines


# ========== 格式化器工厂 ==========

class FormatterFactory:
    """格式化器工厂"""

    _formatters = {
        "simple": SimpleFormatter,
        "detailed": DetailedFormatter,
        "json": JSONFormatter,
        "structured": StructuredFormatter,
    }

    @classmethod
    def create(cls, format_type: str, **kwargs) -> BaseFormatter:
        """创建格式化器"""
        formatter_class = cls._formatters.get(format_type)
        if not formatter_class:
            raise ValueError(f"Unknown formatter type: {format_type}")
        return formatter_class(**kwargs)

    @classmethod
    def get_default(cls, format_type: str = "detailed") -> BaseFormatter:
        """获取默认格式化器"""
        return cls.create(format_type)


def get_formatter(format_type: str = "detailed", **kwargs) -> BaseFormatter:
    """便捷函数：获取格式化器"""
    return FormatterFactory.create(format_type, **kwargs)


__all__ = [
    "BaseFormatter",
    "SimpleFormatter",
    "DetailedFormatter",
    "JSONFormatter",
    "StructuredFormatter",
    "FormatterFactory",
    "get_formatter",
]

"""
日志配置模块

提供日志系统的配置功能。
"""

import logging
import logging.handlers
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from .formatters import FormatterFactory


class LogLevel(Enum):
    """日志级别"""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class LogFormat(Enum):
    """日志格式"""
    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"
    STRUCTURED = "structured"


def _default_log_dir() -> str:
    return str(Path.home() / ".chatflow" / "logs")


def _default_log_filename() -> str:
    return f"chatflow_{datetime.now().strftime('%Y%m%d')}.log"


@dataclass
class LogConfig:
    """日志配置"""
    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.DETAILED
    enable_console: bool = True
    enable_file: bool = False
    log_dir: str = field(default_factory=_default_log_dir)
    log_filename: str = field(default_factory=_default_log_filename)
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    include_timestamp: bool = True
    include_level: bool = True
    include_logger_name: bool = True
    include_function: bool = False
    include_line_number: bool = False
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.name,
            "format": self.format.name,
            "enable_console": self.enable_console,
            "enable_file": self.enable_file,
            "log_dir": self.log_dir,
            "log_filename": self.log_filename,
            "max_bytes": self.max_bytes,
            "backup_count": self.backup_count,
            "include_timestamp": self.include_timestamp,
            "include_level": self.include_level,
            "include_logger_name": self.include_logger_name,
            "include_function": self.include_function,
            "include_line_number": self.include_line_number,
            "extra_fields": self.extra_fields,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogConfig':
        return cls(
            level=LogLevel[str(data.get("level", "INFO")).upper()],
            format=LogFormat[str(data.get("format", "DETAILED")).upper()],
            enable_console=data.get("enable_console", True),
            enable_file=data.get("enable_file", False),
            log_dir=data.get("log_dir", _default_log_dir()),
            log_filename=data.get("log_filename", _default_log_filename()),
            max_bytes=data.get("max_bytes", 10 * 1024 * 1024),
            backup_count=data.get("backup_count", 5),
            include_timestamp=data.get("include_timestamp", True),
            include_level=data.get("include_level", True),
            include_logger_name=data.get("include_logger_name", True),
            include_function=data.get("include_function", False),
            include_line_number=data.get("include_line_number", False),
            extra_fields=data.get("extra_fields", {}),
        )

    @classmethod
    def default(cls) -> 'LogConfig':
        """获取默认配置"""
        return cls()

    @classmethod
    def development(cls) -> 'LogConfig':
        """开发环境配置"""
        return cls(
            level=LogLevel.DEBUG,
            format=LogFormat.DETAILED,
            enable_console=True,
            enable_file=False,
            include_line_number=True,
        )

    @classmethod
    def production(cls) -> 'LogConfig':
        """生产环境配置"""
        return cls(
            level=LogLevel.INFO,
            format=LogFormat.JSON,
            enable_console=True,
            enable_file=True,
            max_bytes=50 * 1024 * 1024,  # 50MB
            backup_count=10,
        )

    def get_log_file_path(self) -> Path:
        """获取日志文件路径（确保目录存在）"""
        Path(self.log_dir).mkdir(parents=True, exist_ok=True)
        return Path(self.log_dir) / self.log_filename

    def create_formatter(self):
        """按配置创建格式化器"""
        if self.format is LogFormat.DETAILED:
            return FormatterFactory.create(
                "detailed",
                include_timestamp=self.include_timestamp,
                include_level=self.include_level,
                include_logger=self.include_logger_name,
                include_function=self.include_function,
                include_line=self.include_line_number,
            )
        if self.format is LogFormat.JSON:
            return FormatterFactory.create("json", extra_fields=self.extra_fields)
        if self.format is LogFormat.STRUCTURED:
            return FormatterFactory.create("structured", extra_fields=self.extra_fields)
        return FormatterFactory.create("simple")


# configure_logging 安装的处理器带有此标记，重复配置时先移除
_HANDLER_MARK = "_chatflow_handler"


def configure_logging(config: LogConfig = None, logger_name: str = "chatflow") -> logging.Logger:
    """
    配置日志记录器

    为指定记录器安装控制台处理器和（可选的）轮转文件处理器。
    重复调用会替换之前安装的处理器。

    Args:
        config: 日志配置
        logger_name: 日志记录器名称

    Returns:
        配置好的日志记录器
    """
    config = config or LogConfig.default()
    logger = logging.getLogger(logger_name)
    logger.setLevel(config.level.value)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = config.create_formatter()
    handlers = []

    if config.enable_console:
        handlers.append(logging.StreamHandler())

    if config.enable_file:
        handlers.append(logging.handlers.RotatingFileHandler(
            config.get_log_file_path(),
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setLevel(config.level.value)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)

    return logger


__all__ = [
    "LogLevel",
    "LogFormat",
    "LogConfig",
    "configure_logging",
]

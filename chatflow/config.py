"""
配置模块

提供服务、日志和解释器的配置管理。
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from chatflow.logger import LogConfig, LogFormat, LogLevel


@dataclass
class ServerSettings:
    """服务器设置"""
    host: str = "127.0.0.1"
    port: int = 8080
    reload: bool = False
    # 同时保留的预览会话数量，超出时关闭最早的会话
    max_sessions: int = 100
    # CORS
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = True


@dataclass
class LogSettings:
    """日志设置"""
    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.DETAILED
    file_path: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    def to_log_config(self) -> LogConfig:
        """转换为日志系统配置"""
        config = LogConfig(
            level=self.level,
            format=self.format,
            max_bytes=self.max_bytes,
            backup_count=self.backup_count,
        )
        if self.file_path:
            config.enable_file = True
            config.log_dir = str(Path(self.file_path).parent)
            config.log_filename = Path(self.file_path).name
        return config


@dataclass
class InterpreterSettings:
    """解释器设置"""
    # 两次外部输入之间最多执行的步骤数，超过视为死循环
    max_steps: int = 1000


@dataclass
class AppConfig:
    """应用配置"""
    server: ServerSettings = field(default_factory=ServerSettings)
    log: LogSettings = field(default_factory=LogSettings)
    interpreter: InterpreterSettings = field(default_factory=InterpreterSettings)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """从环境变量加载配置"""
        server = ServerSettings(
            host=os.getenv("SERVER_HOST", "127.0.0.1"),
            port=int(os.getenv("SERVER_PORT", "8080")),
            reload=os.getenv("SERVER_RELOAD", "false").lower() == "true",
            max_sessions=int(os.getenv("SERVER_MAX_SESSIONS", "100")),
            cors_allow_origins=(
                os.getenv("CORS_ALLOW_ORIGINS").split(",")
                if os.getenv("CORS_ALLOW_ORIGINS") else ["*"]
            ),
        )

        log = LogSettings(
            level=LogLevel[os.getenv("LOG_LEVEL", "INFO").upper()],
            format=LogFormat[os.getenv("LOG_FORMAT", "DETAILED").upper()],
            file_path=os.getenv("LOG_FILE_PATH"),
        )

        interpreter = InterpreterSettings(
            max_steps=int(os.getenv("INTERPRETER_MAX_STEPS", "1000")),
        )

        return cls(server=server, log=log, interpreter=interpreter)

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "reload": self.server.reload,
                "max_sessions": self.server.max_sessions,
                "cors_allow_origins": self.server.cors_allow_origins,
            },
            "log": {
                "level": self.log.level.name,
                "format": self.log.format.value,
                "file_path": self.log.file_path,
            },
            "interpreter": {
                "max_steps": self.interpreter.max_steps,
            },
        }


# 全局配置实例
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置"""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """设置全局配置"""
    global _config
    _config = config


def reset_config() -> None:
    """重置配置"""
    global _config
    _config = None


__all__ = [
    "ServerSettings",
    "LogSettings",
    "InterpreterSettings",
    "AppConfig",
    "get_config",
    "set_config",
    "reset_config",
]

"""
日志系统模块

提供日志配置、格式化和运行日志记录。

主要组件:
- LogConfig: 日志配置
- Formatter: 日志格式化器
- RunLogger: 流程运行日志记录器

使用示例:
```python
from chatflow.logger import LogConfig, LogFormat, configure_logging, RunLogger

configure_logging(LogConfig(format=LogFormat.JSON))

run_log = RunLogger()
run_log.start()
run_log.step_start("step_1", "message")
run_log.step_end("continue", result={"text": "你好"})
print(run_log.summary())
```

日志文件保存位置（启用文件日志时）:
- 默认: ~/.chatflow/logs/chatflow_YYYYMMDD.log
"""

from .config import (
    LogLevel,
    LogFormat,
    LogConfig,
    configure_logging,
)

from .formatters import (
    BaseFormatter,
    SimpleFormatter,
    DetailedFormatter,
    JSONFormatter,
    StructuredFormatter,
    FormatterFactory,
    get_formatter,
)

from .execution import (
    RunLogEntry,
    RunLogger,
)

__all__ = [
    # Config
    "LogLevel",
    "LogFormat",
    "LogConfig",
    "configure_logging",
    # Formatters
    "BaseFormatter",
    "SimpleFormatter",
    "DetailedFormatter",
    "JSONFormatter",
    "StructuredFormatter",
    "FormatterFactory",
    "get_formatter",
    # Run Logger
    "RunLogEntry",
    "RunLogger",
]

"""
chatflow 命令行工具

使用方式:
    chatflow serve                          # 启动 HTTP 服务
    chatflow run flow.json                  # 在终端中交互预览
    chatflow run flow.json -i Ada -i 是     # 用脚本输入运行
    chatflow validate flow.yaml             # 静态校验
    chatflow convert flow.json --to yaml    # 格式转换
"""

import argparse
import sys
from typing import List, Optional

from chatflow import __version__
from chatflow.config import get_config
from chatflow.flows import (
    FlowError,
    FlowInterpreter,
    FlowParser,
    FlowValidator,
    RunState,
    TranscriptEntry,
    TranscriptRole,
    UnknownChoiceError,
    resolve_choice,
    simulate,
)
from chatflow.logger import LogLevel, configure_logging

# 颜色输出
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_status(msg: str):
    print(f"{BLUE}[chatflow]{RESET} {msg}")


def print_entry(entry: TranscriptEntry):
    """打印一条对话记录"""
    if entry.is_error:
        print(f"{RED}[{entry.error_code.value}]{RESET} {entry.text}")
    elif entry.role == TranscriptRole.USER:
        print(f"{GREEN}你:{RESET} {entry.text}")
    elif entry.role == TranscriptRole.IMAGE:
        text = entry.text if len(entry.text) <= 80 else entry.text[:77] + "..."
        print(f"{YELLOW}[图片]{RESET} {text}")
    else:
        print(f"{BLUE}机器人:{RESET} {entry.text}")


# ==================== 命令 ====================

def cmd_serve(args: argparse.Namespace) -> int:
    """启动 HTTP 服务"""
    import uvicorn

    config = get_config()
    host = args.host or config.server.host
    port = args.port or config.server.port
    reload = args.reload or config.server.reload

    print_status(f"启动 REST API 服务 on {host}:{port}...")
    print_status(f"  - API 文档: http://{host}:{port}/docs")
    print_status(f"  - 健康检查: http://{host}:{port}/health")

    uvicorn.run(
        "chatflow.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=(args.log_level or config.log.level.name).lower(),
    )
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """运行流程"""
    parsed = FlowParser().load_file(args.file)
    print_status(f"流程: {parsed.name} ({len(parsed.graph)} 个步骤)")

    if args.input:
        result = simulate(parsed.graph, parsed.variables, args.input, max_steps=args.max_steps)
        for entry in result.transcript:
            print_entry(entry)
        if not result.finished:
            print_status(f"输入已用完，运行停在 {result.status.state.value}")
            return 2
        if result.remaining_inputs:
            print_status(f"有 {len(result.remaining_inputs)} 条输入未使用")
        return 0 if result.ok else 1

    return _run_interactive(parsed.graph, parsed.variables, args.max_steps)


def _run_interactive(graph, variables, max_steps: Optional[int]) -> int:
    interpreter = FlowInterpreter(max_steps=max_steps)
    delta = interpreter.start(graph, variables.snapshot())
    _print_delta(delta)

    while not delta.status.is_finished:
        status = delta.status
        try:
            if status.state == RunState.AWAITING_CHOICE:
                for index, option in enumerate(status.options, 1):
                    print(f"  {index}. {option.label}")
                answer = input("> ").strip()
                if answer.isdigit() and 1 <= int(answer) <= len(status.options):
                    choice_id = status.options[int(answer) - 1].id
                else:
                    choice_id = resolve_choice(status.options, answer)
                delta = interpreter.submit_choice(choice_id)
            else:
                delta = interpreter.submit_text_answer(input("> "))
        except UnknownChoiceError:
            print_status("没有这个选项，请重新选择")
            continue
        except (EOFError, KeyboardInterrupt):
            print()
            print_status("预览已中止")
            return 130
        _print_delta(delta)

    return 0 if delta.status.error_code is None else 1


def _print_delta(delta) -> None:
    for entry in delta.entries:
        if entry.role != TranscriptRole.USER:
            print_entry(entry)


def cmd_validate(args: argparse.Namespace) -> int:
    """校验流程"""
    parsed = FlowParser().load_file(args.file)
    issues = FlowValidator().validate(parsed.graph, parsed.variables)

    if not issues:
        print_status(f"{GREEN}流程 {parsed.name} 没有发现问题{RESET}")
        return 0

    for issue in issues:
        color = RED if issue.is_error else YELLOW
        location = f" [{issue.step_id}]" if issue.step_id else ""
        print(f"{color}{issue.severity.value:<7}{RESET} {issue.code}{location}: {issue.message}")

    errors = sum(1 for issue in issues if issue.is_error)
    print_status(f"{errors} 个错误，{len(issues) - errors} 个警告")
    return 1 if errors else 0


def cmd_convert(args: argparse.Namespace) -> int:
    """转换格式"""
    flow_parser = FlowParser()
    parsed = flow_parser.load_file(args.file)

    if args.output:
        path = flow_parser.save_file(args.output, parsed.graph, parsed.variables)
        print_status(f"已写入 {path}")
        return 0

    if args.to == "yaml":
        sys.stdout.write(flow_parser.dump_yaml(parsed.graph, parsed.variables))
    else:
        sys.stdout.write(flow_parser.dump_json(parsed.graph, parsed.variables) + "\n")
    return 0


# ==================== 入口 ====================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatflow",
        description="对话流程编排与预览工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
    chatflow serve --port 3000              # 自定义端口
    chatflow run flow.json                  # 交互预览
    chatflow run flow.json -i Ada           # 脚本输入
    chatflow validate flow.yaml             # 校验
    chatflow convert flow.json --to yaml    # 转为 YAML
        """,
    )
    parser.add_argument("--version", action="version", version=f"chatflow {__version__}")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别 (默认: serve 读取 LOG_LEVEL，其余命令为 WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="启动 HTTP 服务")
    serve.add_argument("--host", type=str, default=None, help="监听地址 (默认: SERVER_HOST)")
    serve.add_argument("--port", type=int, default=None, help="监听端口 (默认: SERVER_PORT)")
    serve.add_argument("--reload", action="store_true", help="代码修改后自动重启")
    serve.set_defaults(handler=cmd_serve)

    run = subparsers.add_parser("run", help="运行流程")
    run.add_argument("file", help="流程文件 (.json / .yaml)")
    run.add_argument(
        "-i", "--input",
        action="append",
        default=[],
        help="按顺序提交的输入，可重复；选择题可填选项 ID 或选项文本",
    )
    run.add_argument("--max-steps", type=int, default=None, help="两次输入之间的步数上限")
    run.set_defaults(handler=cmd_run)

    validate = subparsers.add_parser("validate", help="校验流程")
    validate.add_argument("file", help="流程文件 (.json / .yaml)")
    validate.set_defaults(handler=cmd_validate)

    convert = subparsers.add_parser("convert", help="转换流程文件格式")
    convert.add_argument("file", help="流程文件 (.json / .yaml)")
    convert.add_argument("--to", choices=["json", "yaml"], default="json", help="输出格式")
    convert.add_argument("-o", "--output", default=None, help="输出文件（按扩展名决定格式）")
    convert.set_defaults(handler=cmd_convert)

    return parser


def main(argv: List[str] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_config = get_config().log.to_log_config()
    if args.log_level:
        log_config.level = LogLevel[args.log_level]
    elif args.command != "serve":
        log_config.level = LogLevel.WARNING
    configure_logging(log_config)

    try:
        return args.handler(args)
    except FileNotFoundError as e:
        print_status(f"{RED}文件不存在: {e.filename}{RESET}")
        return 2
    except FlowError as e:
        print_status(f"{RED}{e.message}{RESET}")
        return 2


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Hallway 服务器入口

    python -m hallway --port 8080
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .exceptions import HallwayError
from .hub import HubServer
from .utils import HallwayConfig, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hallway 实时聊天中继服务器")
    parser.add_argument("--host", help="监听地址 (默认: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="监听端口 (默认: 8080)")
    parser.add_argument("--path", help="WebSocket 路径 (默认: /chat)")
    parser.add_argument("--log-level", dest="log_level", help="日志级别 (默认: INFO)")
    parser.add_argument(
        "--overflow-policy",
        dest="overflow_policy",
        choices=["disconnect", "drop"],
        help="出站队列已满时的策略 (默认: disconnect)",
    )
    return parser


async def run_server(
    config: HallwayConfig, stop_requested: Optional[asyncio.Event] = None
) -> None:
    """运行服务器直到收到 SIGINT/SIGTERM

    Args:
        config: 服务器配置
        stop_requested: 停止信号，信号处理函数只负责设置它
    """
    if stop_requested is None:
        stop_requested = asyncio.Event()
    server = HubServer(config)
    await server.start()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows 不支持 add_signal_handler，依赖 KeyboardInterrupt
            pass

    serving = asyncio.create_task(server.serve_forever())
    waiting = asyncio.create_task(stop_requested.wait())
    try:
        done, _ = await asyncio.wait(
            {serving, waiting}, return_when=asyncio.FIRST_COMPLETED
        )
        if serving in done:
            # Hub 异常退出时在这里重新抛出
            serving.result()
    finally:
        waiting.cancel()
        await server.stop()
        await asyncio.gather(serving, waiting, return_exceptions=True)
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                pass


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = HallwayConfig.from_env()
        config.update(
            host=args.host,
            port=args.port,
            path=args.path,
            log_level=args.log_level,
            overflow_policy=args.overflow_policy,
        )
        config.validate()
    except HallwayError as e:
        print(f"❌ 配置错误: {e.message}", file=sys.stderr)
        return 2

    logger = configure_logging(
        level=config.log_level,
        log_file=config.log_file,
        enable_rich=config.enable_rich_logging,
    )
    logger.info(f"Hallway 服务器运行于 {config.host}:{config.port}{config.path}")

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        pass
    except HallwayError as e:
        logger.critical(f"服务器异常退出: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

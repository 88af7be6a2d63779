"""结构化日志配置模块。

使用 structlog 提供结构化日志支持，支持 JSON 和控制台两种输出格式。
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from swap_trader.config import LogFormat, get_settings


def setup_logging() -> None:
    """配置结构化日志系统。

    根据配置设置日志级别和输出格式。
    """
    settings = get_settings()

    # 设置标准库日志级别
    log_level = getattr(logging, settings.log_level)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # 共享处理器
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    # 根据格式选择渲染器
    if settings.log_format == LogFormat.JSON:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """获取结构化日志记录器。

    Args:
        name: 日志记录器名称。如果为 None，则使用调用模块名。

    Returns:
        结构化日志记录器实例。
    """
    return structlog.get_logger(name)


# 便捷日志函数
def log_quote(
    logger: structlog.stdlib.BoundLogger,
    *,
    input_mint: str,
    output_mint: str,
    amount: int,
    success: bool,
    latency_ms: float,
    **kwargs: Any,
) -> None:
    """记录报价请求。"""
    level = "debug" if success else "warning"
    getattr(logger, level)(
        "quote",
        input_mint=input_mint,
        output_mint=output_mint,
        amount=amount,
        success=success,
        latency_ms=round(latency_ms, 2),
        **kwargs,
    )


def log_submission(
    logger: structlog.stdlib.BoundLogger,
    *,
    stage: str,
    success: bool,
    signature: str | None = None,
    **kwargs: Any,
) -> None:
    """记录交易构建/广播/确认的各阶段。"""
    level = "info" if success else "warning"
    getattr(logger, level)(
        "tx_submission",
        stage=stage,
        success=success,
        signature=signature,
        **kwargs,
    )


def log_trade(
    logger: structlog.stdlib.BoundLogger,
    *,
    action: str,
    owner: str,
    asset: str,
    success: bool,
    signature: str | None = None,
    **kwargs: Any,
) -> None:
    """记录买入/卖出结果。"""
    level = "info" if success else "warning"
    getattr(logger, level)(
        "trade",
        action=action,
        owner=owner,
        asset=asset,
        success=success,
        signature=signature,
        **kwargs,
    )


def log_exit_trigger(
    logger: structlog.stdlib.BoundLogger,
    *,
    asset: str,
    reason: str,
    change_pct: float,
    **kwargs: Any,
) -> None:
    """记录止盈/止损触发。"""
    logger.warning(
        "exit_triggered",
        asset=asset,
        reason=reason,
        change_pct=round(change_pct, 4),
        **kwargs,
    )

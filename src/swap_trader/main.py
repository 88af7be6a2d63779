"""CLI 入口模块 - swap-trader 命令行接口。"""

import json
import sys
import time
from pathlib import Path

import click

from swap_trader import __version__
from swap_trader.aggregator.client import AggregatorClient
from swap_trader.bot import TradeBot
from swap_trader.config import get_settings
from swap_trader.engine.quotes import QuoteClient
from swap_trader.errors import QuoteUnavailable, SwapTraderError
from swap_trader.journal.store import JournalStore
from swap_trader.ledger.rpc import SolanaRpcLedger
from swap_trader.signing.signers import load_signer_factory
from swap_trader.types import TradeOptions
from swap_trader.utils.logging import get_logger, setup_logging


@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="显示版本号")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """swap-trader - 基于聚合器报价的自动换币交易与止盈止损监控。"""
    if version:
        click.echo(f"swap-trader version {__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("input_mint")
@click.argument("output_mint")
@click.argument("amount", type=int)
@click.option("--slippage-bps", type=int, default=None, help="滑点（基点）")
def quote(input_mint: str, output_mint: str, amount: int, slippage_bps: int | None) -> None:
    """查询一次报价（AMOUNT 为输入资产的最小单位）。"""
    setup_logging()
    settings = get_settings()
    client = QuoteClient(AggregatorClient(settings))
    result = client.quote(
        input_mint,
        output_mint,
        amount,
        settings.default_slippage_bps if slippage_bps is None else slippage_bps,
    )
    if isinstance(result, QuoteUnavailable):
        click.echo(f"[ERROR] Quote unavailable: {result.message}")
        sys.exit(1)

    click.echo(
        json.dumps(
            {
                "input_mint": result.input_mint,
                "output_mint": result.output_mint,
                "in_amount": result.in_amount,
                "out_amount": result.out_amount,
                "price": result.price,
                "price_impact_pct": result.price_impact_pct,
                "slippage_bps": result.slippage_bps,
            },
            indent=2,
        )
    )


@cli.command()
@click.argument("owner")
@click.option("--asset", default=None, help="代币 mint；省略时查询基础资产余额")
def balance(owner: str, asset: str | None) -> None:
    """查询链上余额。"""
    setup_logging()
    settings = get_settings()
    ledger = SolanaRpcLedger(settings)
    try:
        if asset:
            click.echo(f"{asset}: {ledger.get_token_balance(owner, asset)}")
        else:
            raw = ledger.get_balance(owner)
            click.echo(f"base: {raw} ({settings.from_base_units(raw)})")
    except SwapTraderError as exc:
        click.echo(f"[ERROR] {exc.code}: {exc.message}")
        sys.exit(1)


@cli.command()
@click.option("--asset", default=None, help="启动时买入的代币 mint")
@click.option("--amount", type=float, default=None, help="买入花费的基础资产数量")
@click.option("--take-profit", type=float, default=None, help="止盈百分比")
@click.option("--stop-loss", type=float, default=None, help="止损百分比")
@click.option("--slippage-bps", type=int, default=None, help="滑点（基点）")
@click.option("--interval", "-i", type=float, default=None, help="监控间隔（秒）")
def run(
    asset: str | None,
    amount: float | None,
    take_profit: float | None,
    stop_loss: float | None,
    slippage_bps: int | None,
    interval: float | None,
) -> None:
    """连接钱包，可选买入一个代币，然后持续监控止盈止损。

    使用 Ctrl+C 停止。
    """
    setup_logging()
    logger = get_logger("swap_trader.main")
    settings = get_settings()
    settings.ensure_directories()

    missing = settings.validate_for_trading()
    if missing:
        logger.error(
            "missing_required_config",
            missing_keys=missing,
            hint="请在 .env 文件中配置必要的参数",
        )
        sys.exit(1)
    if (asset is None) != (amount is None):
        logger.error("invalid_arguments", hint="--asset 与 --amount 需同时提供")
        sys.exit(1)

    bot = TradeBot(settings, journal=JournalStore(settings.journal_dir))
    try:
        signer = load_signer_factory(settings.signer_factory)()
    except Exception as e:
        logger.exception("signer_load_failed", error=str(e))
        sys.exit(1)

    connected = bot.connect_wallet(signer)
    if not connected["success"]:
        logger.error("wallet_connect_failed", **connected)
        sys.exit(1)

    if asset is not None and amount is not None:
        result = bot.buy_token(
            asset,
            amount,
            TradeOptions(
                slippage_bps=slippage_bps,
                take_profit_pct=take_profit,
                stop_loss_pct=stop_loss,
            ),
        )
        logger.info("initial_buy", success=result["success"], error=result.get("error"))

    bot.start_monitoring(interval)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("run_interrupted", message="User stopped monitoring")
    finally:
        stopped = bot.stop_monitoring()
        positions = bot.list_positions()
        logger.info(
            "run_finished",
            clean_shutdown=stopped["success"],
            open_positions=len(positions.get("positions", [])),
        )


@cli.command()
def status() -> None:
    """显示系统状态和配置摘要。"""
    setup_logging()
    settings = get_settings()

    click.echo("=" * 50)
    click.echo("swap-trader - Status")
    click.echo("=" * 50)
    click.echo()

    click.echo("[Endpoints]")
    click.echo(f"   RPC: {settings.rpc_url} ({settings.rpc_commitment})")
    click.echo(f"   Quote API: {settings.aggregator_quote_url}")
    click.echo(f"   Swap API: {settings.aggregator_swap_url}")
    signer_status = settings.signer_factory or "[--] Not configured"
    click.echo(f"   Signer factory: {signer_status}")
    click.echo()

    click.echo("[Trading]")
    click.echo(f"   Base mint: {settings.base_mint}")
    click.echo(f"   Default slippage: {settings.default_slippage_bps} bps")
    click.echo(f"   Broadcast retries: {settings.max_retries}")
    click.echo(
        f"   Priority fee: {settings.priority_level} "
        f"(max {settings.priority_fee_max_lamports} lamports)"
    )
    click.echo()

    click.echo("[Monitor]")
    click.echo(f"   Interval: {settings.monitor_interval}s")
    click.echo(f"   Workers: {settings.monitor_workers}")
    click.echo(f"   Probe amount: {settings.probe_amount}")
    click.echo(f"   Probe timeout: {settings.monitor_probe_timeout}s")
    click.echo()

    click.echo("[Logging]")
    click.echo(f"   Log level: {settings.log_level}")
    click.echo(f"   Log format: {settings.log_format.value}")
    click.echo(f"   Journal dir: {settings.journal_dir}")
    click.echo()

    missing = settings.validate_for_trading()
    if missing:
        click.echo("[ERROR] Trading configuration incomplete, missing:")
        for key in missing:
            click.echo(f"   - {key}")
    else:
        click.echo("[OK] Trading configuration complete")

    click.echo()
    click.echo("=" * 50)


@cli.command()
def check() -> None:
    """检查系统依赖和配置。"""
    setup_logging()
    logger = get_logger("swap_trader.main")

    click.echo("Checking system dependencies...")
    click.echo()

    all_ok = True

    packages = [
        ("pydantic", "Configuration validation"),
        ("pydantic_settings", "Settings loading"),
        ("httpx", "HTTP client"),
        ("structlog", "Structured logging"),
        ("click", "CLI framework"),
        ("tenacity", "Retry mechanism"),
    ]

    for pkg_name, desc in packages:
        try:
            __import__(pkg_name)
            click.echo(f"  [OK] {pkg_name} - {desc}")
        except ImportError:
            click.echo(f"  [MISSING] {pkg_name} - {desc}")
            all_ok = False

    click.echo()

    env_file = Path(".env")
    if env_file.exists():
        click.echo("  [OK] .env configuration file exists")
    else:
        click.echo("  [WARN] .env file not found (using defaults)")

    click.echo()

    if all_ok:
        click.echo("[OK] All dependency checks passed")
    else:
        click.echo("[ERROR] Some dependencies missing. Run: pip install -e .")

    logger.info("dependency_check_completed", all_ok=all_ok)


# 支持 python -m swap_trader.main 调用
if __name__ == "__main__":
    cli()

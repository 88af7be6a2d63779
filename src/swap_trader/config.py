"""配置加载模块 - 从环境变量和 .env 文件加载配置。"""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"


class LogFormat(str, Enum):
    """日志格式枚举。"""

    JSON = "json"
    CONSOLE = "console"


class Settings(BaseSettings):
    """系统配置设置。

    从环境变量和 .env 文件加载配置。
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== 链上 RPC ====================
    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Ledger JSON-RPC endpoint",
    )
    rpc_commitment: Literal["processed", "confirmed", "finalized"] = Field(
        default="confirmed",
        description="确认级别",
    )
    rpc_timeout: float = Field(default=15.0, gt=0, le=120, description="RPC 调用超时（秒）")

    # ==================== 聚合器 API ====================
    aggregator_quote_url: str = Field(
        default="https://quote-api.jup.ag/v6/quote",
        description="聚合器报价接口",
    )
    aggregator_swap_url: str = Field(
        default="https://quote-api.jup.ag/v6/swap",
        description="聚合器交易构建接口",
    )
    quote_timeout: float = Field(default=10.0, gt=0, le=60, description="报价超时（秒）")

    # ==================== 交易参数 ====================
    base_mint: str = Field(default=WRAPPED_SOL_MINT, description="基础资产 mint")
    base_decimals: int = Field(default=9, ge=0, le=18, description="基础资产精度")
    default_slippage_bps: int = Field(
        default=100,
        ge=1,
        le=5_000,
        description="默认滑点（基点）",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="交易广播重传上限",
    )
    priority_fee_max_lamports: int = Field(
        default=10_000_000,
        ge=0,
        description="优先费上限（lamports）",
    )
    priority_level: Literal["medium", "high", "veryHigh"] = Field(
        default="veryHigh",
        description="优先费等级",
    )
    confirm_timeout: float = Field(
        default=90.0,
        gt=0,
        le=600,
        description="确认等待上限（秒）",
    )
    confirm_poll_interval: float = Field(
        default=1.0,
        ge=0,
        le=10,
        description="确认轮询间隔（秒）",
    )

    # ==================== 监控参数 ====================
    monitor_interval: float = Field(default=30.0, gt=0, description="监控间隔（秒）")
    monitor_workers: int = Field(default=4, ge=1, le=32, description="监控并发数")
    monitor_probe_timeout: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="单个价格探测超时（秒）",
    )
    probe_amount: int = Field(
        default=1_000_000,
        gt=0,
        description="价格探测参考数量（原始单位）",
    )

    # ==================== 钱包 ====================
    signer_factory: str = Field(
        default="",
        description="签名器工厂导入路径，格式 module:callable",
    )

    # ==================== 日志配置 ====================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="日志级别",
    )
    log_format: LogFormat = Field(
        default=LogFormat.CONSOLE,
        description="日志输出格式",
    )

    # ==================== 数据存储 ====================
    journal_dir: Path = Field(
        default=Path("data/journal"),
        description="交易日志存储目录",
    )

    @field_validator("journal_dir", mode="before")
    @classmethod
    def parse_journal_dir(cls, v: str | Path) -> Path:
        """将字符串转换为 Path 对象。"""
        return Path(v) if isinstance(v, str) else v

    def ensure_directories(self) -> None:
        """确保必要的目录存在。"""
        self.journal_dir.mkdir(parents=True, exist_ok=True)

    def to_base_units(self, amount: float) -> int:
        """把以整币计的基础资产数量换算为最小单位。"""
        return round(amount * 10**self.base_decimals)

    def from_base_units(self, raw: int | float) -> float:
        """把最小单位换算回基础资产单位。"""
        return raw / 10**self.base_decimals

    def validate_for_trading(self) -> list[str]:
        """验证实盘交易的必要配置，返回缺失项列表。"""
        missing = []
        if not self.rpc_url:
            missing.append("RPC_URL")
        if not self.aggregator_quote_url:
            missing.append("AGGREGATOR_QUOTE_URL")
        if not self.aggregator_swap_url:
            missing.append("AGGREGATOR_SWAP_URL")
        if not self.signer_factory:
            missing.append("SIGNER_FACTORY")
        return missing


# 全局配置实例（延迟初始化）
_settings: Settings | None = None


def get_settings() -> Settings:
    """获取全局配置实例。"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """重新加载配置。"""
    global _settings
    _settings = Settings()
    return _settings

"""Trading bot facade: the plain-result surface consumed by the HTTP layer and CLI."""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Callable, Mapping

from swap_trader.aggregator.client import AggregatorClient
from swap_trader.config import Settings
from swap_trader.engine.executor import TradeExecutor
from swap_trader.engine.monitor import PositionMonitor
from swap_trader.engine.quotes import QuoteClient
from swap_trader.engine.store import PositionStore
from swap_trader.engine.submitter import TransactionSubmitter
from swap_trader.errors import SwapTraderError, WalletNotConnected
from swap_trader.journal.store import JournalStore
from swap_trader.ledger.base import Ledger
from swap_trader.ledger.rpc import SolanaRpcLedger
from swap_trader.signing.signers import Signer
from swap_trader.types import TradeOptions, TradeResult
from swap_trader.utils.logging import get_logger

_OPTION_FIELDS = {f.name for f in fields(TradeOptions)}


class TradeBot:
    """Wires the engine together and exposes dict-returning operations.

    No method raises: failures come back as ``{"success": False, "error": ...}``.
    Several wallets may be connected; trades act for the most recent one and
    the monitor sells with whichever wallet owns the position.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        ledger: Ledger | None = None,
        aggregator: AggregatorClient | None = None,
        store: PositionStore | None = None,
        journal: JournalStore | None = None,
    ) -> None:
        self._settings = settings
        self._logger = get_logger("swap_trader.bot")
        self._ledger = ledger or SolanaRpcLedger(settings)
        aggregator = aggregator or AggregatorClient(settings)
        self._store = store or PositionStore()
        self._quotes = QuoteClient(aggregator)
        self._executor = TradeExecutor(
            settings,
            self._store,
            self._quotes,
            TransactionSubmitter(settings, aggregator, self._ledger),
            self._ledger,
            journal,
        )
        self._signers: dict[str, Signer] = {}
        self._wallet: Signer | None = None
        self._monitor = PositionMonitor(
            settings,
            self._store,
            self._quotes,
            self._executor,
            self._signers.get,
            journal,
        )

    @property
    def owner(self) -> str | None:
        return self._wallet.public_id if self._wallet is not None else None

    @property
    def monitor(self) -> PositionMonitor:
        return self._monitor

    def connect_wallet(self, signer: Signer) -> dict[str, Any]:
        """Attach a signer and report its base-asset balance."""

        def _connect() -> dict[str, Any]:
            balance = self._ledger.get_balance(signer.public_id)
            self._signers[signer.public_id] = signer
            self._wallet = signer
            self._logger.info(
                "wallet_connected",
                owner=signer.public_id,
                balance=self._settings.from_base_units(balance),
            )
            return {
                "success": True,
                "owner": signer.public_id,
                "balance": balance,
                "balance_base": self._settings.from_base_units(balance),
            }

        return self._guard("connect_wallet", _connect)

    def buy_token(
        self,
        asset: str,
        base_amount: float,
        options: TradeOptions | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Buy ``asset`` with ``base_amount`` whole base units (e.g. 0.5 SOL)."""

        def _buy() -> dict[str, Any]:
            wallet = self._require_wallet()
            result = self._executor.buy(
                wallet.public_id,
                asset,
                self._settings.to_base_units(base_amount),
                _coerce_options(options),
                wallet,
            )
            return self._present(result)

        return self._guard("buy_token", _buy)

    def sell_token(
        self,
        asset: str,
        percentage: float = 100,
        options: TradeOptions | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        def _sell() -> dict[str, Any]:
            wallet = self._require_wallet()
            result = self._executor.sell(
                wallet.public_id,
                asset,
                percentage,
                _coerce_options(options),
                wallet,
            )
            return self._present(result)

        return self._guard("sell_token", _sell)

    def reconcile(self, asset: str) -> dict[str, Any]:
        def _reconcile() -> dict[str, Any]:
            wallet = self._require_wallet()
            return self._present(self._executor.reconcile(wallet.public_id, asset))

        return self._guard("reconcile", _reconcile)

    def list_positions(self, owner: str | None = None) -> dict[str, Any]:
        """Active positions for ``owner`` (default: connected wallet, else all)."""

        def _list() -> dict[str, Any]:
            target = owner or self.owner
            positions = self._store.list_positions(target)
            return {
                "success": True,
                "owner": target,
                "positions": [p.to_dict() for p in positions],
            }

        return self._guard("list_positions", _list)

    def start_monitoring(self, interval_seconds: float | None = None) -> dict[str, Any]:
        def _start() -> dict[str, Any]:
            interval = interval_seconds or self._settings.monitor_interval
            started = self._monitor.start(interval)
            return {"success": True, "started": started, "interval_seconds": interval}

        return self._guard("start_monitoring", _start)

    def stop_monitoring(self, timeout: float | None = None) -> dict[str, Any]:
        def _stop() -> dict[str, Any]:
            stopped = self._monitor.stop(timeout)
            return {"success": stopped, "stopped": stopped}

        return self._guard("stop_monitoring", _stop)

    def _require_wallet(self) -> Signer:
        if self._wallet is None:
            raise WalletNotConnected("wallet_not_connected")
        return self._wallet

    def _present(self, result: TradeResult) -> dict[str, Any]:
        payload = result.to_dict()
        if result.profit is not None:
            payload["profit_base"] = self._settings.from_base_units(result.profit)
        if result.output_amount is not None and result.action == "sell":
            payload["output_base"] = self._settings.from_base_units(result.output_amount)
        return payload

    def _guard(self, operation: str, fn: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        try:
            return fn()
        except SwapTraderError as exc:
            self._logger.warning(operation + "_failed", error=exc.code, message=exc.message)
            return {"success": False, "error": exc.code, "message": exc.message}
        except Exception as exc:  # noqa: BLE001 - the facade never raises.
            self._logger.exception(operation + "_crashed", error=str(exc))
            return {"success": False, "error": "internal_error", "message": str(exc)}


def _coerce_options(options: TradeOptions | Mapping[str, Any] | None) -> TradeOptions:
    if options is None:
        return TradeOptions()
    if isinstance(options, TradeOptions):
        return options
    return TradeOptions(**{k: v for k, v in options.items() if k in _OPTION_FIELDS and v is not None})

"""Take-profit / stop-loss monitor loop."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable

from swap_trader.config import Settings
from swap_trader.engine.executor import TradeExecutor
from swap_trader.engine.quotes import QuoteClient
from swap_trader.engine.store import PositionStore
from swap_trader.errors import InvalidTransition, QuoteUnavailable
from swap_trader.journal.store import JournalStore
from swap_trader.signing.signers import Signer
from swap_trader.types import ExitReason, Position, TradeOptions, TradeResult
from swap_trader.utils.logging import get_logger, log_exit_trigger

SignerLookup = Callable[[str], Signer | None]


def evaluate_exit(position: Position, probe_price: float) -> tuple[ExitReason | None, float]:
    """Return the exit to take (if any) and the change versus entry, in percent.

    Take-profit wins when both thresholds would fire.
    """
    if position.entry_price <= 0:
        return None, 0.0
    change_pct = (probe_price - position.entry_price) / position.entry_price * 100
    if position.take_profit_pct is not None and change_pct >= position.take_profit_pct:
        return "take_profit", change_pct
    if position.stop_loss_pct is not None and change_pct <= -abs(position.stop_loss_pct):
        return "stop_loss", change_pct
    return None, change_pct


class PositionMonitor:
    """Periodically probes open positions and exits those past a threshold.

    Probes run on a bounded thread pool under one shared deadline per tick;
    a slow or failing probe is logged and skipped without affecting the
    others. Triggered sells are always waited for, since the submitter
    bounds them by the confirmation window.
    """

    def __init__(
        self,
        settings: Settings,
        store: PositionStore,
        quotes: QuoteClient,
        executor: TradeExecutor,
        signer_for: SignerLookup,
        journal: JournalStore | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._quotes = quotes
        self._executor = executor
        self._signer_for = signer_for
        self._journal = journal
        self._logger = get_logger("swap_trader.engine.monitor")
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_lock = threading.Lock()
        self._iteration = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval_seconds: float | None = None) -> bool:
        """Start the scheduler thread. Returns ``False`` if already running."""
        if self.is_running:
            return False
        interval = interval_seconds or self._settings.monitor_interval
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(interval,),
            name="position-monitor",
            daemon=True,
        )
        self._thread.start()
        self._logger.info("monitor_started", interval_seconds=interval)
        return True

    def stop(self, timeout: float | None = None) -> bool:
        """Stop scheduling ticks and wait for the current one to finish.

        Returns ``True`` when the scheduler thread has exited.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        stopped = not thread.is_alive()
        if stopped:
            self._thread = None
        self._logger.info("monitor_stopped", clean=stopped, iterations=self._iteration)
        return stopped

    def run_tick(self) -> dict[str, Any]:
        """Run one monitoring pass and return its summary."""
        with self._tick_lock:
            self._iteration += 1
            started = time.perf_counter()
            summary: dict[str, Any] = {
                "iteration": self._iteration,
                "checked": 0,
                "triggered": [],
                "skipped": [],
                "reconciled": [],
            }

            for position in self._store.list_unconfirmed():
                result = self._executor.reconcile(position.owner, position.asset)
                summary["reconciled"].append(
                    {"asset": position.asset, "success": result.success, "outcome": result.reason}
                )

            positions = self._store.list_open()
            if positions:
                self._logger.info("monitor_tick", positions=len(positions))
                pool = ThreadPoolExecutor(
                    max_workers=self._settings.monitor_workers,
                    thread_name_prefix="monitor-worker",
                )
                try:
                    triggers = self._probe_all(pool, positions, summary)
                    self._exit_all(pool, triggers, summary)
                finally:
                    # Timed-out probes are read-only; let them finish on their own.
                    pool.shutdown(wait=False, cancel_futures=True)

            summary["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 2)
            if self._journal is not None and (positions or summary["reconciled"]):
                self._journal.append("monitor_tick", summary)
            return summary

    def _probe_all(
        self,
        pool: ThreadPoolExecutor,
        positions: list[Position],
        summary: dict[str, Any],
    ) -> list[tuple[Position, ExitReason, float]]:
        futures: list[tuple[Position, Future[float | QuoteUnavailable]]] = [
            (
                position,
                pool.submit(
                    self._quotes.price,
                    position.asset,
                    self._settings.base_mint,
                    self._settings.probe_amount,
                    self._settings.default_slippage_bps,
                ),
            )
            for position in positions
        ]
        deadline = time.monotonic() + self._settings.monitor_probe_timeout
        triggers: list[tuple[Position, ExitReason, float]] = []
        for position, future in futures:
            summary["checked"] += 1
            try:
                probe = future.result(timeout=max(0.0, deadline - time.monotonic()))
            except FutureTimeout:
                self._skip(summary, position, "probe_timeout")
                continue
            except Exception as exc:  # noqa: BLE001 - one broken position must not stop the tick.
                self._skip(summary, position, f"probe_error: {exc}")
                continue
            if isinstance(probe, QuoteUnavailable):
                self._skip(summary, position, probe.message)
                continue

            reason, change_pct = evaluate_exit(position, probe)
            self._logger.debug(
                "position_checked",
                asset=position.asset,
                price=probe,
                entry_price=position.entry_price,
                change_pct=round(change_pct, 4),
            )
            if reason is not None:
                triggers.append((position, reason, change_pct))
        return triggers

    def _exit_all(
        self,
        pool: ThreadPoolExecutor,
        triggers: list[tuple[Position, ExitReason, float]],
        summary: dict[str, Any],
    ) -> None:
        pending: list[tuple[Position, ExitReason, float, Future[TradeResult]]] = []
        for position, reason, change_pct in triggers:
            signer = self._signer_for(position.owner)
            if signer is None:
                self._skip(summary, position, "no_signer")
                continue
            log_exit_trigger(
                self._logger,
                asset=position.asset,
                reason=reason,
                change_pct=change_pct,
                owner=position.owner,
            )
            if self._journal is not None:
                self._journal.append(
                    "exit_trigger",
                    {
                        "owner": position.owner,
                        "asset": position.asset,
                        "reason": reason,
                        "change_pct": change_pct,
                        "entry_price": position.entry_price,
                    },
                )
            future = pool.submit(
                self._executor.sell,
                position.owner,
                position.asset,
                100,
                TradeOptions(reason=reason),
                signer,
            )
            pending.append((position, reason, change_pct, future))

        for position, reason, change_pct, future in pending:
            try:
                result = future.result()
            except Exception as exc:  # noqa: BLE001 - one broken position must not stop the tick.
                self._skip(summary, position, f"sell_error: {exc}")
                continue
            if not result.success and result.error == InvalidTransition.code:
                # A concurrent sell got there first.
                self._logger.debug("exit_already_in_progress", asset=position.asset)
                continue
            summary["triggered"].append(
                {
                    "asset": position.asset,
                    "reason": reason,
                    "change_pct": round(change_pct, 4),
                    "success": result.success,
                    "error": result.error,
                    "signature": result.signature,
                }
            )

    def _skip(self, summary: dict[str, Any], position: Position, why: str) -> None:
        self._logger.warning("monitor_probe_failed", asset=position.asset, error=why)
        summary["skipped"].append({"asset": position.asset, "error": why})

    def _run(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_tick()
            except Exception as exc:  # noqa: BLE001 - keep the scheduler alive across ticks.
                self._logger.exception("monitor_tick_failed", error=str(exc))
            self._stop_event.wait(interval)

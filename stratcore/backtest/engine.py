"""stratcore.backtest.engine

Event-ordered backtest over historical bars.

Per bar, strictly in this order:
1) mark open positions to market and append one equity point
2) exit phase: close positions crossing the exit policy
3) entry phase: ask the signal source about every flat, priced symbol

After the last bar every open position is force-closed and the final equity
point is restated to settled cash. The run is single-threaded; only symbol
loading fans out to a thread pool.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date

from stratcore.backtest import metrics
from stratcore.backtest.data import MarketBar, MarketDataProvider, OHLCVBar, assemble_bars
from stratcore.backtest.fills import SlippageConfig, simulate_fill
from stratcore.backtest.models import (
    BacktestProgress,
    EquityPoint,
    ExitPolicy,
    OpenPosition,
    PortfolioState,
    SimConfig,
    SimResult,
    SimTrade,
)
from stratcore.backtest.signals import BarContext, IndicatorSignalSource, SignalSource
from stratcore.core.config import BacktestSettings
from stratcore.core.exceptions import NoHistoricalDataError, SimulationCancelled
from stratcore.core.types import Action, OrderType, Side

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BacktestProgress], None]


class BacktestEngine:
    """One instance per strategy. ``run`` always starts from fresh state."""

    def __init__(
        self,
        config: SimConfig,
        *,
        market_data: MarketDataProvider,
        signal_source: SignalSource | None = None,
        slippage: SlippageConfig | None = None,
        exit_policy: ExitPolicy | None = None,
        settings: BacktestSettings | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.market_data = market_data
        self.signal_source = signal_source or IndicatorSignalSource()
        self.settings = settings or BacktestSettings()
        self.slippage = slippage or SlippageConfig()
        self.exit_policy = exit_policy or ExitPolicy.from_settings(self.settings)
        self.on_progress = on_progress
        self.cancel_event = cancel_event

        self.portfolio = PortfolioState(cash=config.initial_capital)
        self.trades: list[SimTrade] = []
        self.equity_curve: list[EquityPoint] = []

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _fetch(self, symbol: str) -> list[OHLCVBar]:
        return self.market_data.get_bars(symbol, self.config.start, self.config.end)

    def load_bars(self) -> list[MarketBar]:
        symbols = self.config.symbols
        workers = min(max(1, int(self.settings.loader_workers)), len(symbols))

        loaded: dict[str, list[OHLCVBar]] = {}
        with ThreadPoolExecutor(max_workers=workers) as pool:
            future_map = {pool.submit(self._fetch, s): s for s in symbols}
            for future in as_completed(future_map):
                symbol = future_map[future]
                try:
                    loaded[symbol] = future.result()
                except Exception:
                    logger.exception("market_data_load_failed", extra={"symbol": symbol})

        bars = assemble_bars(loaded, symbols)
        logger.info("market_data_loaded", extra={"symbols": len(loaded), "bars": len(bars)})
        return bars

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> SimResult:
        cfg = self.config
        self.portfolio = PortfolioState(cash=cfg.initial_capital)
        self.trades = []
        self.equity_curve = []

        logger.info(
            "backtest_started",
            extra={
                "strategy_id": cfg.strategy_id,
                "symbols": list(cfg.symbols),
                "start": cfg.start.isoformat(),
                "end": cfg.end.isoformat(),
                "initial_capital": cfg.initial_capital,
            },
        )

        bars = self.load_bars()
        if not bars:
            raise NoHistoricalDataError(
                f"no historical data for {list(cfg.symbols)} between {cfg.start} and {cfg.end}"
            )

        total = len(bars)
        for i, bar in enumerate(bars):
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info("backtest_cancelled", extra={"strategy_id": cfg.strategy_id, "bar": i})
                raise SimulationCancelled(f"backtest {cfg.strategy_id} cancelled at bar {i} of {total}")

            equity = self.portfolio.mark_to_market(bar.prices)
            self.equity_curve.append(EquityPoint(date=bar.date, equity=equity))

            self._check_exits(bar)
            self._run_entries(bar)

            if self.on_progress is not None:
                self.on_progress(
                    BacktestProgress(
                        date=bar.date,
                        percent=(i + 1) / total * 100.0,
                        trades_executed=len(self.trades),
                        equity=self.portfolio.equity,
                    )
                )

        self._close_all(bars[-1])
        settled = self.portfolio.recompute()
        last = self.equity_curve[-1]
        self.equity_curve[-1] = EquityPoint(date=last.date, equity=settled)

        result = self._build_result()
        logger.info(
            "backtest_finished",
            extra={
                "strategy_id": cfg.strategy_id,
                "total_return": result.total_return,
                "sharpe_ratio": result.sharpe_ratio,
                "max_drawdown": result.max_drawdown,
                "total_trades": result.total_trades,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _market_inputs(self, bar: MarketBar, symbol: str) -> tuple[float, float]:
        """Return (average volume, volatility) for the fill model."""

        ind = bar.indicators.get(symbol, {})
        avg_volume = ind.get("avg_volume") or bar.volume.get(symbol) or self.settings.default_volume
        volatility = ind.get("atr", self.settings.default_volatility)
        return float(avg_volume), float(volatility)

    def _check_exits(self, bar: MarketBar) -> None:
        for symbol in list(self.portfolio.positions):
            price = bar.prices.get(symbol)
            if price is None:
                continue
            pos = self.portfolio.positions[symbol]
            reason = self.exit_policy.exit_reason(entry_price=pos.entry_price, price=price)
            if reason is not None:
                self._close(symbol, bar, price=price, reason=reason)

    def _run_entries(self, bar: MarketBar) -> None:
        for symbol, price in bar.prices.items():
            if symbol in self.portfolio.positions:
                continue

            ctx = BarContext(
                date=bar.date,
                price=price,
                volume=bar.volume.get(symbol, 0.0),
                indicators=bar.indicators.get(symbol, {}),
            )
            try:
                signal = self.signal_source.decide(symbol, ctx)
            except Exception:
                logger.exception("signal_source_failed", extra={"symbol": symbol, "date": bar.date.isoformat()})
                continue

            if signal.action == Action.BUY:
                self._open(symbol, bar, price=price)
            elif signal.action == Action.SELL:
                logger.debug("sell_signal_ignored_flat", extra={"symbol": symbol})

    def _open(self, symbol: str, bar: MarketBar, *, price: float) -> None:
        value = self.portfolio.equity * self.settings.position_fraction
        quantity = math.floor(value / price)
        if quantity <= 0:
            return

        avg_volume, volatility = self._market_inputs(bar, symbol)
        fill = simulate_fill(
            Side.BUY,
            OrderType.MARKET,
            quantity,
            None,
            price,
            avg_volume,
            volatility,
            self.config.commission_per_trade,
            self.slippage,
        )
        if not fill.filled:
            return

        cost = fill.fill_price * fill.fill_quantity + fill.commission
        if cost > self.portfolio.cash:
            logger.debug("entry_skipped_insufficient_cash", extra={"symbol": symbol, "cost": cost})
            return

        self.portfolio.cash -= cost
        pos = OpenPosition(
            symbol=symbol,
            quantity=fill.fill_quantity,
            entry_price=fill.fill_price,
            entry_date=bar.date,
            mark_price=fill.fill_price,
        )
        pos.mark(price)
        self.portfolio.positions[symbol] = pos
        self.portfolio.recompute()

        self.trades.append(
            SimTrade(
                date=bar.date,
                symbol=symbol,
                action=Side.BUY,
                quantity=fill.fill_quantity,
                price=fill.fill_price,
                commission=fill.commission,
                entry_price=fill.fill_price,
                reason="signal",
            )
        )
        logger.debug(
            "position_opened",
            extra={"symbol": symbol, "quantity": fill.fill_quantity, "price": fill.fill_price, "slippage": fill.slippage},
        )

    def _close(self, symbol: str, bar: MarketBar, *, price: float, reason: str) -> None:
        pos = self.portfolio.positions.get(symbol)
        if pos is None:
            return

        avg_volume, volatility = self._market_inputs(bar, symbol)
        fill = simulate_fill(
            Side.SELL,
            OrderType.MARKET,
            pos.quantity,
            None,
            price,
            avg_volume,
            volatility,
            self.config.commission_per_trade,
            self.slippage,
        )
        if not fill.filled:
            return

        proceeds = fill.fill_price * fill.fill_quantity - fill.commission
        pnl = proceeds - (pos.entry_price * pos.quantity + self.config.commission_per_trade)

        self.trades.append(
            SimTrade(
                date=bar.date,
                symbol=symbol,
                action=Side.SELL,
                quantity=fill.fill_quantity,
                price=fill.fill_price,
                commission=fill.commission,
                pnl=pnl,
                entry_price=pos.entry_price,
                exit_price=fill.fill_price,
                reason=reason,
            )
        )
        self.portfolio.cash += proceeds
        del self.portfolio.positions[symbol]
        self.portfolio.recompute()
        logger.debug("position_closed", extra={"symbol": symbol, "reason": reason, "pnl": pnl})

    def _close_all(self, bar: MarketBar) -> None:
        for symbol in list(self.portfolio.positions):
            price = bar.prices.get(symbol, self.portfolio.positions[symbol].mark_price)
            self._close(symbol, bar, price=price, reason="end_of_backtest")

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _build_result(self) -> SimResult:
        cfg = self.config
        settings = self.settings
        values = [p.equity for p in self.equity_curve]
        final_equity = values[-1] if values else cfg.initial_capital

        daily = metrics.bar_returns(values)
        pnls = [t.pnl for t in self.trades if t.pnl is not None]
        streaks = metrics.streaks(pnls)

        total = metrics.total_return(cfg.initial_capital, final_equity)
        span_days = _span_days(self.equity_curve[0].date, self.equity_curve[-1].date) if self.equity_curve else 0
        annual = metrics.annualized_return(total, span_days)
        drawdown = metrics.max_drawdown(values)

        return SimResult(
            initial_capital=cfg.initial_capital,
            final_equity=final_equity,
            total_return=total,
            annualized_return=annual,
            sharpe_ratio=metrics.sharpe_ratio(
                daily, risk_free_rate=settings.risk_free_rate, periods_per_year=settings.periods_per_year
            ),
            sortino_ratio=metrics.sortino_ratio(
                daily, risk_free_rate=settings.risk_free_rate, periods_per_year=settings.periods_per_year
            ),
            calmar_ratio=metrics.calmar_ratio(annual, drawdown),
            max_drawdown=drawdown,
            win_rate=metrics.win_rate(pnls),
            profit_factor=metrics.profit_factor(pnls),
            total_trades=len(self.trades),
            closed_trades=len(pnls),
            average_trade=metrics.average_trade(pnls),
            average_win=metrics.average_win(pnls),
            average_loss=metrics.average_loss(pnls),
            max_consecutive_wins=streaks.wins,
            max_consecutive_losses=streaks.losses,
            trades=tuple(self.trades),
            equity_curve=tuple(self.equity_curve),
            daily_returns=tuple(daily),
            monthly_returns=tuple(metrics.monthly_returns((p.date, p.equity) for p in self.equity_curve)),
        )


def _span_days(first: date, last: date) -> int:
    return max(0, (last - first).days)


def run_backtest(
    config: SimConfig,
    *,
    market_data: MarketDataProvider,
    signal_source: SignalSource | None = None,
    settings: BacktestSettings | None = None,
    slippage: SlippageConfig | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> SimResult:
    engine = BacktestEngine(
        config,
        market_data=market_data,
        signal_source=signal_source,
        settings=settings,
        slippage=slippage,
        on_progress=on_progress,
        cancel_event=cancel_event,
    )
    return engine.run()
